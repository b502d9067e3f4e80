"""Text-to-speech pipeline: chunking, synthesis, assembly and job coordination."""

from laudreader.tts.assembler import GenerationProgress, assemble_audio
from laudreader.tts.chunker import AudioChunk, make_chunks, split_into_chunks
from laudreader.tts.client import SynthesisClient
from laudreader.tts.coordinator import GenerationCoordinator

__all__ = [
    "GenerationProgress",
    "assemble_audio",
    "AudioChunk",
    "make_chunks",
    "split_into_chunks",
    "SynthesisClient",
    "GenerationCoordinator",
]
