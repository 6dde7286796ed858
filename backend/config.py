"""Configuration management for the sheet knowledge RAG pipeline."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
GOOGLE_SHEETS_API_KEY = os.getenv("GOOGLE_SHEETS_API_KEY")
GOOGLE_SHEETS_SPREADSHEET_ID = os.getenv("GOOGLE_SHEETS_SPREADSHEET_ID")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Knowledge category written on every ingested chunk ("BtoB" or "BtoC").
# When unset the category is resolved from the sheet name prefix.
KNOWLEDGE_CATEGORY = os.getenv("KNOWLEDGE_CATEGORY")
DEFAULT_CATEGORY = "BtoC"
CATEGORY_BY_SHEET_PREFIX = {
    "B6CH": "BtoB",
    "M6CH": "BtoC",
}

# Model Configuration
EMBEDDING_MODEL = "sentence-transformers/all-mpnet-base-v2"
EMBEDDING_DIMENSIONS = 768
DEFAULT_GENERATION_MODEL = "llama-3.3-70b-versatile"
GENERATION_MODEL_PRIORITY = [
    "llama-3.3-70b-versatile",
    "llama-3.1-70b-versatile",
    "llama3-70b-8192",
    "llama-3.1-8b-instant",
    "llama3-8b-8192",
]
MODEL_CACHE_TTL_SECONDS = 24 * 60 * 60

# Chunking Configuration
MAX_CHUNK_TOKENS = 500  # estimated tokens
CONTEXT_WINDOW_SIZE = 1  # neighbouring rows on each side
CONTEXT_PREVIEW_CHARS = 100
MIN_CONTENT_LENGTH = 10

# Embedding batching
EMBEDDING_BATCH_SIZE = 100
EMBEDDING_BATCH_DELAY = 1.0  # seconds between batches
EMBEDDING_ITEM_DELAY = 0.2  # seconds between individual retries

# Sheet source
SHEET_HEADER_ROW_INDEX = 5  # header lives on the 6th row
SHEET_RANGE_COLUMNS = "A:Z"
SHEET_FETCH_DELAY = 0.1

# Retrieval Configuration
MATCH_THRESHOLD = 0.5
MATCH_OVERSAMPLE = 3  # fetch limit * 3 candidates before re-ranking
MAX_RESULTS = 5

SECTION_PRIORITY = {
    "Intro": 1.5,
    "Lecture": 1.3,
    "Outro": 0.5,
}

TYPE_PRIORITY = {
    "article": 1.2,
    "description": 1.1,
    "text": 1.0,
    "survey": 0.8,
}

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
