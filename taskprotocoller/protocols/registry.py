# Registry of all task categories a protocol can contain.
# Each entry defines metadata used by both the backend and the participant task page.
#
# "params" maps a parameter name to its allowed "values" (if restricted) and
# "default". "primary_param" names the parameter stored with each recording.
# A "repeat" parameter expands the task into that many consecutive attempts.
from django.utils.translation import gettext_lazy as _

# Task types that are intro steps rather than measured tasks.
INTRO_TYPES = frozenset({"info", "consent"})

TASK_REGISTRY: dict[str, dict] = {
    "phonation": {
        "label": "Sustained phonation",
        "type": "voice",
        "recording": {"mode": "count_down", "duration_ms": 8_000},
        "use_vad": False,
        "instructions": (
            "Take a deep breath, then say '{{vowel}}' and hold it as long and as "
            "steadily as you can. The recording stops by itself."
        ),
        "instructions_active": "Keep holding '{{vowel}}'.",
        "primary_param": "vowel",
        "params": {
            "vowel": {"values": ["a", "i", "u"], "default": "a"},
            "repeat": {"default": 1},
        },
    },
    "ddk": {
        "label": "Diadochokinesis",
        "type": "voice",
        "recording": {"mode": "delayed_stop", "duration_ms": 10_000},
        "use_vad": False,
        "instructions": (
            "Repeat the syllables '{{syllable}}' as quickly and clearly as you can "
            "on one breath. You can stop after 10 seconds."
        ),
        "instructions_active": "Keep repeating '{{syllable}}'.",
        "primary_param": "syllable",
        "params": {
            "syllable": {"values": ["pa", "ta", "ka", "pataka"], "default": "pataka"},
            "repeat": {"default": 1},
        },
    },
    "reading": {
        "label": "Reading passage",
        "type": "voice",
        "recording": {"mode": "free", "duration_ms": 0},
        "use_vad": False,
        "instructions": "Read the text on the screen aloud at your usual pace. Press stop when you finish.",
        "instructions_active": "",
        "primary_param": "passage",
        "params": {
            "passage": {"values": ["rainbow", "grandfather"], "default": "rainbow"},
        },
    },
    "picture_description": {
        "label": "Picture description",
        "type": "voice",
        "recording": {"mode": "delayed_stop", "duration_ms": 60_000},
        "use_vad": True,
        "instructions": "Describe everything you see happening in the picture.",
        "instructions_active": "Keep describing the picture.",
        "illustration": "img/pictures/{{picture}}.png",
        "primary_param": "picture",
        "params": {
            "picture": {"values": ["cookie_theft", "picnic"], "default": "cookie_theft"},
        },
    },
    "monologue": {
        "label": "Monologue",
        "type": "voice",
        "recording": {"mode": "delayed_stop", "duration_ms": 90_000},
        "use_vad": True,
        "allow_pause": True,
        "instructions": "You will speak freely about a topic. Start with: {{topic}}.",
        "instructions_active": "Talk about {{topic}}.",
        "sub_items_param": "topics",
        "placeholder": "topic",
        "params": {
            "topics": {"default": ["your last holiday", "your favourite meal", "your daily routine"]},
        },
    },
    "d15": {
        "label": "D-15 colour arrangement",
        "type": "vision",
        "instructions": (
            "Starting from the reference cap, pick the colour closest to the last "
            "one you placed until all caps are arranged."
        ),
        "params": {},
    },
}

# Labels shown in the progress bar and on the completion overlay.
TASK_TYPE_LABELS = {
    "task": _("Task"),
    "voice": _("Voice task"),
    "questionnaire": _("Questionnaire"),
    "vision": _("Vision task"),
    "info": _("Information"),
    "consent": _("Consent"),
    "milestone_25": _("A quarter done"),
    "milestone_50": _("Halfway there"),
    "milestone_75": _("Three quarters done"),
}


def task_type_for(category: str) -> str:
    """Return the task type of a registered category. Raises KeyError if unknown."""
    return TASK_REGISTRY[category]["type"]


def default_params(category: str) -> dict:
    return {
        name: param.get("default")
        for name, param in TASK_REGISTRY[category].get("params", {}).items()
    }
