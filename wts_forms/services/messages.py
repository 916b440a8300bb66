"""User-facing form messages for the site languages (en, lo, th, fr)."""

from typing import Dict, Optional

DEFAULT_LANGUAGE = "en"

TRANSLATIONS: Dict[str, Dict[str, str]] = {
    "en": {
        "requiredField": "This field is required.",
        "invalidEmail": "Please enter a valid email address.",
        "invalidPhone": "Please enter a valid phone number (e.g., +1234567890).",
        "formErrors": "Please correct the errors in the form.",
        "submissionSuccess": "Thank you for your submission! Your request has been sent successfully.",
        "subscribeSuccess": "Thanks for subscribing!",
        "submissionQueued": "Your submission has been saved and will be sent once the service is back online.",
        "submissionFailed": "Submission failed",
        "tryAgainLater": "Please try again later.",
        "sending": "Sending...",
        "submitRequest": "Submit Request",
        "subscribing": "Subscribing...",
        "subscribe": "Subscribe",
    },
    "lo": {
        "requiredField": "ຊ່ອງນີ້ຕ້ອງການ.",
        "invalidEmail": "ກະລຸນາໃສ່ທີ່ຢູ່ອີເມວທີ່ຖືກຕ້ອງ.",
        "invalidPhone": "ກະລຸນາໃສ່ເບີໂທລະສັບທີ່ຖືກຕ້ອງ (ຕົວຢ່າງ: +1234567890).",
        "formErrors": "ກະລຸນາແກ້ໄຂຂໍ້ຜິດພາດໃນແບບຟອມ.",
        "submissionSuccess": "ຄຳຮ້ອງຂໍຂອງທ່ານຖືກສົ່ງສຳເລັດແລ້ວ!",
        "submissionFailed": "ການສົ່ງລົ້ມເຫລວ",
        "tryAgainLater": "ກະລຸນາລອງໃໝ່ອີກຄັ້ງພາຍຫຼັງ.",
        "sending": "ກຳລັງສົ່ງ...",
        "submitRequest": "ສົ່ງຄຳຮ້ອງຂໍ",
        "subscribing": "ກຳລັງສະໝັກ...",
        "subscribe": "ສະໝັກ",
    },
    "th": {
        "requiredField": "ช่องนี้จำเป็นต้องกรอก",
        "invalidEmail": "กรุณาใส่อีเมลที่ถูกต้อง",
        "invalidPhone": "กรุณาใส่เบอร์โทรศัพท์ที่ถูกต้อง (เช่น +1234567890).",
        "formErrors": "กรุณาแก้ไขข้อผิดพลาดในแบบฟอร์ม",
        "submissionSuccess": "ส่งคำขอของคุณเรียบร้อยแล้ว!",
        "submissionFailed": "การส่งล้มเหลว",
        "tryAgainLater": "กรุณาลองใหม่อีกครั้งในภายหลัง",
        "sending": "กำลังส่ง...",
        "submitRequest": "ส่งคำขอ",
        "subscribing": "กำลังสมัคร...",
        "subscribe": "สมัคร",
    },
    "fr": {
        "requiredField": "Ce champ est obligatoire.",
        "invalidEmail": "Veuillez entrer une adresse e-mail valide.",
        "invalidPhone": "Veuillez entrer un numéro de téléphone valide (ex: +1234567890).",
        "formErrors": "Veuillez corriger les erreurs dans le formulaire.",
        "submissionSuccess": "Votre demande a été envoyée avec succès !",
        "submissionFailed": "Échec de la soumission",
        "tryAgainLater": "Veuillez réessayer plus tard.",
        "sending": "Envoi en cours...",
        "submitRequest": "Envoyer la demande",
        "subscribing": "Abonnement en cours...",
        "subscribe": "S'abonner",
    },
}


def get_translation(key: str, lang: Optional[str] = None) -> str:
    """Message for ``key`` in ``lang``, falling back to English, then to the key itself."""
    table = TRANSLATIONS.get((lang or DEFAULT_LANGUAGE).lower(), {})
    return table.get(key) or TRANSLATIONS[DEFAULT_LANGUAGE].get(key, key)
