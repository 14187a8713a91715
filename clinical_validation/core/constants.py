"""
Domain Constants for the Clinical Validation Engine

Vocabulary and policy tables used by keyword extraction, the specialty
policy provider and the prompt builder.

Sections:
    1. Keyword extraction vocabulary (stop words, phrases)
    2. Keyword categorization vocabulary (anatomy, modality)
    3. Specialty word budgets and checklists
    4. Validation thresholds and limits

Author: Shubham Singh
Date: December 2025
"""

from typing import Dict, FrozenSet, Tuple


# =============================================================================
# STAGE 1: KEYWORD EXTRACTION VOCABULARY
# =============================================================================

# -----------------------------------------------------------------------------
# 1.1 Stop Words
# -----------------------------------------------------------------------------
# General English function words plus dictation filler that carries no
# search value ("patient", "history", "please").
STOP_WORDS: FrozenSet[str] = frozenset(
    {
        "a", "about", "above", "after", "again", "against", "all", "also", "am",
        "an", "and", "any", "are", "as", "at", "be", "because", "been", "before",
        "being", "below", "between", "both", "but", "by", "can", "could", "did",
        "do", "does", "doing", "down", "during", "each", "few", "for", "from",
        "further", "had", "has", "have", "having", "he", "her", "here", "hers",
        "him", "his", "how", "i", "if", "in", "into", "is", "it", "its", "itself",
        "just", "me", "more", "most", "my", "no", "nor", "not", "now", "of", "off",
        "on", "once", "only", "or", "other", "our", "out", "over", "own", "per",
        "same", "she", "should", "so", "some", "such", "than", "that", "the",
        "their", "them", "then", "there", "these", "they", "this", "those",
        "through", "to", "too", "under", "until", "up", "very", "was", "we",
        "were", "what", "when", "where", "which", "while", "who", "whom", "why",
        "will", "with", "would", "you", "your",
        # Dictation filler
        "patient", "pt", "presents", "presenting", "reports", "states", "noted",
        "history", "hx", "please", "order", "ordering", "request", "requested",
        "evaluate", "evaluation", "eval", "rule", "r/o", "year", "years", "old",
        "yo", "y/o", "male", "female", "man", "woman", "new", "since", "weeks",
        "week", "days", "day", "months", "month", "x",
    }
)

# -----------------------------------------------------------------------------
# 1.2 Multi-word Clinical Phrases
# -----------------------------------------------------------------------------
# Matched before tokenization so they survive as single search terms.
CLINICAL_PHRASES: Tuple[str, ...] = (
    "computed tomography",
    "magnetic resonance",
    "bone density",
    "rotator cuff",
    "low back",
    "lower back",
    "chest pain",
    "shortness of breath",
    "pulmonary embolism",
    "deep vein thrombosis",
    "kidney stone",
    "head injury",
    "range of motion",
    "weight loss",
    "breast mass",
    "abdominal pain",
)


# =============================================================================
# STAGE 2: KEYWORD CATEGORIZATION VOCABULARY
# =============================================================================

ANATOMY_TERMS: FrozenSet[str] = frozenset(
    {
        "head", "neck", "shoulder", "arm", "elbow", "wrist", "hand", "finger",
        "chest", "back", "spine", "abdomen", "pelvis", "hip", "leg", "knee",
        "ankle", "foot", "toe", "brain", "skull", "cervical", "thoracic",
        "lumbar", "sacral", "rotator cuff", "low back", "lower back", "breast",
        "kidney", "liver", "lung", "heart", "aorta", "artery", "vein",
        "abdominal", "sinus", "thyroid", "gallbladder", "bladder", "prostate",
    }
)

MODALITY_TERMS: FrozenSet[str] = frozenset(
    {
        "x-ray", "xray", "radiograph", "radiography", "ct", "cat", "mri", "mra",
        "cta", "ultrasound", "us", "sonogram", "pet", "nuclear", "mammogram",
        "mammography", "dexa", "dxa", "fluoroscopy", "angiogram", "angiography",
        "computed tomography", "magnetic resonance", "bone density",
    }
)


# =============================================================================
# STAGE 3: SPECIALTY POLICY TABLES
# =============================================================================

# -----------------------------------------------------------------------------
# 3.1 Word Budgets
# -----------------------------------------------------------------------------
# Maximum feedback words per ordering specialty. Unlisted specialties use
# ConfigDefaults.DEFAULT_WORD_BUDGET.
SPECIALTY_WORD_BUDGETS: Dict[str, int] = {
    "Family Medicine": 29,
    "Internal Medicine": 30,
    "Dermatology": 30,
    "General Radiology": 30,
    "Emergency Medicine": 25,
    "Pediatrics": 31,
    "Orthopedics": 33,
    "Sports Medicine": 33,
    "Neurology": 35,
    "Cardiology": 35,
    "Gastroenterology": 34,
    "Obstetrics and Gynecology": 32,
    "Urology": 32,
    "Oncology": 40,
    "Neurosurgery": 38,
    "Vascular Surgery": 36,
    "Pulmonology": 34,
    "Rheumatology": 36,
}

# -----------------------------------------------------------------------------
# 3.2 Registered Checklists
# -----------------------------------------------------------------------------
SPECIALTY_CHECKLISTS: Dict[str, Tuple[str, ...]] = {
    "Family Medicine": (
        "Is the primary symptom and its duration documented?",
        "Was conservative management tried before advanced imaging?",
        "Does the requested modality match the body part and symptom?",
    ),
    "Orthopedics": (
        "Is the mechanism of injury or onset documented?",
        "Are physical exam findings (range of motion, stability) recorded?",
        "Were plain radiographs obtained before MRI or CT?",
        "Is laterality specified?",
    ),
    "Oncology": (
        "Is the primary malignancy and its stage documented?",
        "Is the imaging purpose stated (staging, restaging, surveillance)?",
        "Is the date and modality of the most recent prior imaging given?",
        "Are new symptoms or lab changes that prompted imaging recorded?",
        "Is contrast tolerance or renal function addressed?",
    ),
    "Emergency Medicine": (
        "Are red-flag findings that justify urgent imaging documented?",
        "Is the clinical decision rule applied (e.g. Wells, Canadian CT head)?",
    ),
}

# -----------------------------------------------------------------------------
# 3.3 Base Checklist (synthesized for unregistered specialties)
# -----------------------------------------------------------------------------
# Ordered by importance; the synthesizer takes a prefix whose length is set
# by the word-budget tier.
BASE_CHECKLIST: Tuple[str, ...] = (
    "Is a clinical indication (symptom, finding, or diagnosis) stated?",
    "Is the requested imaging modality and body part specified?",
    "Is symptom duration or onset documented?",
    "Is prior treatment or prior imaging described?",
    "Are relevant exam findings or red-flag signs recorded?",
)

# (upper bound on word budget, number of checks): first matching tier wins.
CHECKLIST_TIERS: Tuple[Tuple[int, int], ...] = (
    (25, 2),
    (35, 3),
    (50, 4),
)
CHECKLIST_MAX_CHECKS = 5


# =============================================================================
# STAGE 4: VALIDATION THRESHOLDS AND LIMITS
# =============================================================================

MIN_COMPLIANCE_SCORE = 0
MAX_COMPLIANCE_SCORE = 9

# status=valid requires compliance_score > VALID_SCORE_THRESHOLD
VALID_SCORE_THRESHOLD = 6

SEARCH_RESULT_LIMIT = 100

GENERIC_MALFORMED_FEEDBACK = (
    "Validation could not be completed because the response was unreadable. "
    "Please review the dictation and resubmit."
)
GENERATION_UNAVAILABLE_FEEDBACK = (
    "Automated validation is temporarily unavailable. Please confirm the clinical "
    "indication, symptom duration, and requested study, then resubmit."
)
