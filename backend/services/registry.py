"""
services/registry.py: Module-level service singletons.

All heavy work (API clients, storage clients) is deferred to first use,
so importing this module performs no I/O.
"""

from services.llm import LLMService
from services.note_processor import NoteProcessor
from services.storage import create_storage
from services.text_extraction import TextExtractor
from services.tutor import Tutor

storage = create_storage()
text_extractor = TextExtractor()
llm_service = LLMService()
note_processor = NoteProcessor(storage, text_extractor, llm_service)
tutor = Tutor(llm_service)
