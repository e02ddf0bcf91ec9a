from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Groq
    groq_api_key: str = "gsk_placeholder"
    chat_model: str = "llama-3.3-70b-versatile"
    analysis_model: str = "llama-3.3-70b-versatile"
    vision_model: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    research_model: str = "groq/compound-mini"
    title_model: str = "llama-3.1-8b-instant"
    transcription_model: str = "whisper-large-v3-turbo"

    # Speech
    tts_model: str = "playai-tts"
    tts_voice: str = "Fritz-PlayAI"
    tts_sample_rate: int = 24000

    # Chat
    chat_web_search: bool = True

    # Storage
    database_path: str = "omnitutor.db"
    storage_prefix: str = "omnitutor"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
