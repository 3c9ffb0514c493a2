# File: keyshift/schemas/enums.py
"""Enum definitions for key estimates and pipeline stages."""
from enum import Enum


class KeyMode(str, Enum):
    """Mode of an estimated key."""
    MAJOR = "major"
    MINOR = "minor"


class KeyConfidence(str, Enum):
    """Coarse confidence label of a key estimate."""
    LOW = "low"
    HIGH = "high"


class PrepareStage(str, Enum):
    """Stages of a prepare pipeline, in execution order."""
    METADATA = "metadata"
    ACQUIRE = "acquire"
    PROBE = "probe"
    DECODE = "decode"
    ANALYZE = "analyze"
    REGISTER = "register"
