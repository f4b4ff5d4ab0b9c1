# ABOUTME: Holds the controlled vocabularies for triggers, strategies, and warning signs.
# ABOUTME: Resolves stored values to controlled keys, keeping unknown legacy text tagged.

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence, Tuple, Union

SENSORY_TRIGGER_KEYS = (
    "auditory",
    "visual",
    "tactile",
    "vestibular",
    "interoception",
    "smell",
    "taste",
    "light",
    "temperature",
    "crowding",
)

CONTEXT_TRIGGER_KEYS = (
    "demands",
    "transition",
    "social",
    "unexpected_event",
    "tired",
    "hungry",
    "waiting",
    "group_work",
    "test",
    "new_situation",
)

STRATEGY_KEYS = (
    "shielding",
    "deep_pressure",
    "co_regulation",
    "breathing",
    "own_room",
    "weighted_blanket",
    "headphones",
    "fidget",
    "movement",
    "dark_room",
    "familiar_activity",
    "music",
    "timer_visual_support",
)

WARNING_SIGN_KEYS = (
    "motor_restlessness",
    "verbal_escalation",
    "withdrawal",
    "repetitive_movements",
    "covers_ears",
    "avoids_eye_contact",
    "flushing_sweating",
    "clinging",
    "refuses_instructions",
    "crying",
)

# Display labels written by older app versions before values were stored as keys.
LEGACY_SENSORY_TRIGGERS = {
    "Auditiv": "auditory",
    "Visuell": "visual",
    "Taktil": "tactile",
    "Vestibulær": "vestibular",
    "Interosepsjon": "interoception",
    "Lukt": "smell",
    "Smak": "taste",
    "Lys": "light",
    "Temperatur": "temperature",
    "Trengsel": "crowding",
}

LEGACY_CONTEXT_TRIGGERS = {
    "Krav": "demands",
    "Overgang": "transition",
    "Sosialt": "social",
    "Uventet Hendelse": "unexpected_event",
    "Sliten": "tired",
    "Sult": "hungry",
    "Ventetid": "waiting",
    "Gruppearbeid": "group_work",
    "Prøve/Test": "test",
    "Ny Situasjon": "new_situation",
}

LEGACY_STRATEGIES = {
    "Skjerming": "shielding",
    "Dypt Trykk": "deep_pressure",
    "Samregulering": "co_regulation",
    "Pusting": "breathing",
    "Eget Rom": "own_room",
    "Vektteppe": "weighted_blanket",
    "Hodetelefoner": "headphones",
    "Fidget": "fidget",
    "Bevegelse": "movement",
    "Mørkt Rom": "dark_room",
    "Kjent Aktivitet": "familiar_activity",
    "Musikk": "music",
    "Timer/Visuell Støtte": "timer_visual_support",
}

LEGACY_WARNING_SIGNS = {
    "Økt motorisk uro": "motor_restlessness",
    "Verbal eskalering": "verbal_escalation",
    "Tilbaketrekning": "withdrawal",
    "Repetitive bevegelser": "repetitive_movements",
    "Dekker ører": "covers_ears",
    "Unngår øyekontakt": "avoids_eye_contact",
    "Rødme/svetting": "flushing_sweating",
    "Klamrer seg": "clinging",
    "Nekter instrukser": "refuses_instructions",
    "Gråt": "crying",
}


@dataclass(frozen=True)
class ControlledKey:
    key: str

    @property
    def value(self) -> str:
        return self.key


@dataclass(frozen=True)
class LegacyText:
    text: str

    @property
    def value(self) -> str:
        return self.text


VocabularyTerm = Union[ControlledKey, LegacyText]


@dataclass(frozen=True)
class Vocabulary:
    name: str
    keys: Tuple[str, ...]
    legacy: Mapping[str, str]

    def resolve(self, raw: str) -> VocabularyTerm:
        return resolve_term(raw, self.keys, self.legacy)

    def resolve_all(self, values: Iterable[str]) -> Tuple[VocabularyTerm, ...]:
        return tuple(self.resolve(value) for value in values if isinstance(value, str) and value.strip())


SENSORY_TRIGGERS = Vocabulary("sensory_trigger", SENSORY_TRIGGER_KEYS, LEGACY_SENSORY_TRIGGERS)
CONTEXT_TRIGGERS = Vocabulary("context_trigger", CONTEXT_TRIGGER_KEYS, LEGACY_CONTEXT_TRIGGERS)
STRATEGIES = Vocabulary("strategy", STRATEGY_KEYS, LEGACY_STRATEGIES)
WARNING_SIGNS = Vocabulary("warning_sign", WARNING_SIGN_KEYS, LEGACY_WARNING_SIGNS)


def resolve_term(raw: str, keys: Sequence[str], legacy: Mapping[str, str]) -> VocabularyTerm:
    """
    Resolve a stored value through key, legacy label, and case-insensitive lookups.

    Values that match nothing stay as LegacyText so callers can still count them.
    """

    text = raw.strip()
    if text in keys:
        return ControlledKey(text)
    if text in legacy:
        return ControlledKey(legacy[text])

    folded = text.casefold()
    for key in keys:
        if key.casefold() == folded:
            return ControlledKey(key)
    for label, key in legacy.items():
        if label.casefold() == folded:
            return ControlledKey(key)
    return LegacyText(text)


def normalize_values(values: Iterable[str], vocabulary: Vocabulary) -> Tuple[str, ...]:
    """Map stored values to their canonical strings, de-duplicated in first-seen order."""

    seen = []
    for term in vocabulary.resolve_all(values):
        if term.value not in seen:
            seen.append(term.value)
    return tuple(seen)
