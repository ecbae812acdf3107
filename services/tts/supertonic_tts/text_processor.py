"""Text normalization, segmentation and symbol encoding"""

import re
import unicodedata
from typing import Any, Dict, List, Mapping, Sequence, Tuple, Union

import numpy as np
import structlog

from .tensors import length_to_mask

logger = structlog.get_logger(__name__)

EMOJI_PATTERN = re.compile(
    "[\U0001f600-\U0001f64f"  # emoticons
    "\U0001f300-\U0001f5ff"  # symbols & pictographs
    "\U0001f680-\U0001f6ff"  # transport & map symbols
    "\U0001f700-\U0001f77f"
    "\U0001f780-\U0001f7ff"
    "\U0001f800-\U0001f8ff"
    "\U0001f900-\U0001f9ff"
    "\U0001fa00-\U0001fa6f"
    "\U0001fa70-\U0001faff"
    "\u2600-\u26ff"
    "\u2700-\u27bf"
    "\U0001f1e6-\U0001f1ff]+"
)

CHAR_REPLACEMENTS: Dict[str, str] = {
    "\u2013": "-", "\u2011": "-", "\u2014": "-", "\u00af": " ", "_": " ",
    "“": '"', "”": '"', "‘": "'", "’": "'", "´": "'",
    "`": "'", "[": " ", "]": " ", "|": " ", "/": " ",
    "#": " ", "→": " ", "←": " ",
}

EXPR_REPLACEMENTS: Dict[str, str] = {
    "@": " at ",
    "e.g.,": "for example, ",
    "i.e.,": "that is, ",
}

COMBINING_DIACRITICS_RE = re.compile("[\u0302-\u0308\u030a-\u030c\u0327-\u032f]")
SPECIAL_SYMBOLS_RE = re.compile(r"[♥☆♡©\\]")
SPACE_BEFORE_PUNCT_RE = re.compile(r"\s+(?=[,.!?;:'])")
REPEATED_QUOTES_RE = re.compile(r"(\"|')\1+")
WHITESPACE_RE = re.compile(r"\s+")
END_PUNCT_RE = re.compile(r"[.!?;:,'\")\]}…。」』】〉》›»]$")

PARAGRAPH_RE = re.compile(r"\n\s*\n+")
SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")


def preprocess_text(text: str) -> str:
    """Normalize and sanitize text before unicode indexing"""
    text = unicodedata.normalize("NFKD", text)
    text = EMOJI_PATTERN.sub("", text)
    for old, new in CHAR_REPLACEMENTS.items():
        text = text.replace(old, new)
    text = COMBINING_DIACRITICS_RE.sub("", text)
    text = SPECIAL_SYMBOLS_RE.sub("", text)
    for old, new in EXPR_REPLACEMENTS.items():
        text = text.replace(old, new)

    text = SPACE_BEFORE_PUNCT_RE.sub("", text)
    text = REPEATED_QUOTES_RE.sub(r"\1", text)
    text = WHITESPACE_RE.sub(" ", text).strip()

    if not END_PUNCT_RE.search(text):
        text += "."
    return text


def is_synthesizable(text: str) -> bool:
    """True if normalized text carries anything beyond punctuation"""
    return any(ch.isalnum() for ch in text)


def split_paragraphs(text: str) -> List[str]:
    return [p.strip() for p in PARAGRAPH_RE.split(text.strip()) if p.strip()]


def chunk_text(text: str, max_len: int = 300) -> List[str]:
    """Split text into units of at most ``max_len`` characters.

    Paragraphs (blank-line separated) never share a unit. Within a
    paragraph, sentences are packed greedily; a single sentence longer
    than ``max_len`` becomes a unit of its own.
    """
    if not isinstance(text, str):
        raise TypeError(f"chunk_text expects a string, got {type(text).__name__}")

    chunks: List[str] = []
    for paragraph in split_paragraphs(text):
        current = ""
        for sentence in SENTENCE_RE.split(paragraph):
            if not sentence:
                continue
            if len(current) + len(sentence) + 1 <= max_len:
                current += (" " if current else "") + sentence
            else:
                if current:
                    chunks.append(current.strip())
                current = sentence
        if current:
            chunks.append(current.strip())

    return chunks if chunks else [text.strip()]


def prepare_units(text: str, max_len: int = 300) -> List[str]:
    """Normalize raw text paragraph by paragraph, then segment it"""
    paragraphs = [preprocess_text(p) for p in split_paragraphs(text)]
    paragraphs = [p for p in paragraphs if is_synthesizable(p)]
    units = chunk_text("\n\n".join(paragraphs), max_len=max_len)
    logger.debug("Segmented text", paragraphs=len(paragraphs), units=len(units), max_len=max_len)
    return units


class UnicodeProcessor:
    """Maps unit characters to vocabulary indices and builds padded batches"""

    def __init__(self, indexer: Union[Sequence[int], Mapping[Any, int]]):
        items = indexer.items() if isinstance(indexer, Mapping) else enumerate(indexer)
        # Negative entries mark code points outside the vocabulary
        self.lookup = {int(cp): int(idx) for cp, idx in items if int(idx) >= 0}

    def encode(self, text: str) -> List[int]:
        return [self.lookup.get(ord(ch), 0) for ch in text]

    def __call__(self, text_list: List[str]) -> Tuple[np.ndarray, np.ndarray]:
        """Return text_ids [B, maxLen] (int64) and text_mask [B, 1, maxLen]"""
        lengths = [len(t) for t in text_list]
        max_len = max(lengths) if lengths else 0

        text_ids = np.zeros((len(text_list), max_len), dtype=np.int64)
        for i, text in enumerate(text_list):
            text_ids[i, :lengths[i]] = self.encode(text)

        text_mask = length_to_mask(lengths, max_len=max_len)
        return text_ids, text_mask
