from omnitutor.clients.groq_client import GroqClient, SearchCompletion, SourceLink

__all__ = ["GroqClient", "SearchCompletion", "SourceLink"]
