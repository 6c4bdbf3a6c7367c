"""
ollama-note-summarizer — summarize the selected paper into its note.

Extracts text from the first pages of the paper's PDF (pypdf), asks a chat
model served by Ollama or any OpenAI-compatible backend for a short summary,
and appends it to the paper's note in plain or markdown style.
"""

__version__ = "0.1.0"
