from __future__ import annotations

from typing import Dict, List, Tuple

# Ordered: tags come back in this order. Matching is plain substring containment,
# so short keywords ("men", "pet") also fire inside longer words.
HEALTH_CATEGORIES: Dict[str, Tuple[str, ...]] = {
    "Blood Pressure": ("blood pressure", "hypertension", "cardiovascular"),
    "Heart Health": ("heart", "cardiac", "cardio", "circulation"),
    "Allergies": ("allergy", "allergies", "antihistamine", "seasonal"),
    "Digestive Health": ("digestive", "digestion", "stomach", "gut", "probiotic", "enzyme"),
    "Joint & Arthritis": ("joint", "arthritis", "mobility", "inflammation"),
    "Immune Support": ("immune", "immunity", "defense", "antioxidant"),
    "Stress & Anxiety": ("stress", "anxiety", "calm", "relaxation"),
    "Sleep Support": ("sleep", "insomnia", "rest", "melatonin"),
    "Energy & Vitality": ("energy", "vitality", "fatigue", "endurance"),
    "Brain Health": ("brain", "cognitive", "memory", "focus"),
    "Women's Health": ("women", "female", "menstrual", "menopause"),
    "Men's Health": ("men", "male", "prostate", "testosterone"),
    "Pet Health": ("pet", "dog", "cat", "animal"),
    "Weight Management": ("weight", "diet", "metabolism", "carb blocker"),
    "Skin Health": ("skin", "dermal", "complexion", "cream"),
    "Eye Health": ("eye", "vision", "sight", "ocular"),
    "Liver Support": ("liver", "hepatic", "detox", "cleanse"),
    "Respiratory Health": ("respiratory", "lung", "breathing", "airway", "bronchial"),
    "Bone Health": ("bone", "calcium", "osteo", "skeletal"),
    "Anti-Aging": ("anti-aging", "aging", "longevity", "youth"),
}


def categorize(name: str, description: str = "", table: Dict[str, Tuple[str, ...]] = HEALTH_CATEGORIES) -> List[str]:
    """Tags whose keywords occur (case-insensitively) in the name or description."""
    text = f"{name or ''} {description or ''}".lower()
    return [tag for tag, keywords in table.items() if any(k in text for k in keywords)]
