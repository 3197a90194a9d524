import os
from dotenv import load_dotenv

load_dotenv()

GROQ_API_KEY = os.getenv("GROQ_API_KEY", "")
GROQ_API_URL = os.getenv(
    "GROQ_API_URL",
    "https://api.groq.com/openai/v1/chat/completions",
)
GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
GROQ_TEMPERATURE = float(os.getenv("GROQ_TEMPERATURE", "0.8"))
GROQ_MAX_TOKENS = int(os.getenv("GROQ_MAX_TOKENS", "4000"))
GROQ_TIMEOUT = float(os.getenv("GROQ_TIMEOUT", "30"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Matches kept per session for prompts
HISTORY_SIZE = int(os.getenv("HISTORY_SIZE", "10"))
