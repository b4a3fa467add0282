"""
cubox-tidy - tidy Cubox notes and add LLM summaries.
"""

from cubox_tidy.models import *
from cubox_tidy.config import get_config, set_config, reset_config
from cubox_tidy.line_buffer import LineBuffer
from cubox_tidy.annotation_stripper import AnnotationStripper, get_annotation_stripper, strip_text
from cubox_tidy.section_injector import SectionInjector, get_section_injector
from cubox_tidy.llm_client import get_llm_client, reset_llm_client

__version__ = "1.0.0"
__all__ = [
    "get_config",
    "set_config",
    "reset_config",
    "LineBuffer",
    "AnnotationStripper",
    "get_annotation_stripper",
    "strip_text",
    "SectionInjector",
    "get_section_injector",
    "get_llm_client",
    "reset_llm_client",
]
