"""English / Bahasa Malaysia language detection.

Malay classification needs overwhelming evidence. Business English shares
many loan words with Malay, so anything ambiguous is reported as English.
"""

import logging
import re

logger = logging.getLogger(__name__)

MALAY_WORDS = {
    # function words
    "adalah": 15, "dengan": 15, "untuk": 15, "dalam": 15, "pada": 15, "dari": 15, "yang": 15,
    "akan": 15, "telah": 15, "sudah": 15, "belum": 15, "tidak": 15, "bukan": 15,
    "kami": 15, "kita": 15, "mereka": 15, "anda": 15, "saya": 15,
    "kepada": 15, "daripada": 15, "mengenai": 15, "terhadap": 15,
    # business terms
    "syarikat": 20, "cadangan": 20, "keperluan": 20, "perkhidmatan": 20, "penyelenggaraan": 20,
    "pembinaan": 15, "kerajaan": 20, "latar": 15, "belakang": 10, "sijil": 20, "pensijilan": 20,
    "ringkasan": 20, "eksekutif": 10, "bahagian": 20, "maklumat": 20, "tambahan": 15,
    "meningkatkan": 20, "kredibiliti": 20, "menunjukkan": 20, "kesesuaian": 20,
    "menggunakan": 20, "bahasa": 15, "perniagaan": 20, "persepsi": 20, "positif": 8,
    "komitmen": 12, "standard": 8, "tinggi": 12, "memastikan": 20, "menyediakan": 20,
    "melaksanakan": 20, "mencapai": 20, "berkesan": 20, "berkualiti": 20, "profesional": 8,
    "pendekatan": 20, "teknikal": 10, "pematuhan": 20, "kesimpulan": 20,
    # revision terms
    "diperkukuhkan": 25, "diperbaiki": 25, "ditambah": 25, "dipertingkatkan": 25,
    "diperkemas": 25, "menyeluruh": 20, "panel": 8, "penilai": 15,
}

ENGLISH_WORDS = {
    "the": 15, "and": 15, "with": 15, "for": 15, "from": 15, "that": 15, "this": 15,
    "will": 15, "has": 15, "have": 15, "not": 15, "also": 15, "only": 15, "can": 15,
    "they": 15, "our": 15, "you": 15, "your": 15, "his": 15, "her": 15, "its": 15, "their": 15,
    "are": 15, "about": 15, "towards": 15, "using": 15, "ensure": 15, "provide": 15,
    "implement": 15, "achieve": 15, "deliver": 15,
    "company": 12, "proposal": 15, "requirements": 20, "services": 15, "maintenance": 15,
    "construction": 12, "government": 15, "background": 12, "certifications": 20,
    "executive": 10, "summary": 15, "enhanced": 20, "strengthened": 20, "reorganized": 20,
    "additional": 15, "information": 12, "increase": 15, "credibility": 15,
    "demonstrate": 20, "suitability": 20, "language": 10, "business": 10,
    "perception": 20, "commitment": 12, "standards": 12, "improved": 20, "better": 15,
    "comprehensive": 20,
}

MALAY_PHRASES = [
    (("telah diperkukuhkan", "telah ditambah"), 30),
    (("yang telah", "yang akan"), 25),
    (("kami adalah", "syarikat kami"), 25),
    (("dengan pengalaman", "dalam bidang"), 20),
    (("kepada panel", "panel penilai"), 25),
    (("bahasa malaysia", "bahasa melayu"), 30),
    (("diperkukuhkan dengan", "ditambah bahagian"), 30),
    (("sdn bhd", "berhad"), 1),
]

ENGLISH_PHRASES = [
    (("we are pleased", "our company"), 25),
    (("the company", "the project"), 20),
    (("has been", "have been"), 20),
    (("will be", "can be"), 18),
    (("is a leading", "are a leading"), 20),
    (("look forward", "thank you"), 20),
    (("enhanced with", "strengthened with"), 25),
    (("ltd", "limited", "inc"), 1),
]

MIN_TOTAL_SCORE = 15
MIN_MALAY_WORDS = 4
MIN_MALAY_SCORE = 50
MALAY_DOMINANCE = 3
MIN_MALAY_DENSITY = 8.0


def _clean(text: str) -> str:
    text = re.sub(r"[#*\-_`]", " ", text.lower())
    text = re.sub(r"[^\w\s]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def _phrase_score(text: str, phrases) -> int:
    return sum(weight for options, weight in phrases if any(p in text for p in options))


def detect_language(text: str) -> str:
    """Classify ``text`` as ``"ms"`` (Bahasa Malaysia) or ``"en"``.

    Args:
        text: Proposal or message text, markdown allowed

    Returns:
        ``"ms"`` only with overwhelming Malay evidence, otherwise ``"en"``
    """
    if not text or not isinstance(text, str):
        return "en"

    clean = _clean(text)
    words = [w for w in clean.split(" ") if len(w) > 2]
    if not words:
        return "en"

    malay_score = english_score = 0
    malay_count = 0
    for word in words:
        if word in MALAY_WORDS:
            malay_score += MALAY_WORDS[word]
            malay_count += 1
        if word in ENGLISH_WORDS:
            english_score += ENGLISH_WORDS[word]

    malay_score += _phrase_score(clean, MALAY_PHRASES)
    english_score += _phrase_score(clean, ENGLISH_PHRASES)

    total = malay_score + english_score
    malay_density = malay_count / len(words) * 100

    logger.debug(
        f"Language scores: malay={malay_score} ({malay_count} words, {malay_density:.1f}%), "
        f"english={english_score}"
    )

    if total < MIN_TOTAL_SCORE:
        return "en"

    if (
        malay_count >= MIN_MALAY_WORDS
        and malay_score > english_score * MALAY_DOMINANCE
        and malay_score >= MIN_MALAY_SCORE
        and malay_density >= MIN_MALAY_DENSITY
    ):
        return "ms"
    return "en"
