"""Global pytest configuration."""

import os

# Never reach the OpenAI API from tests, whatever the developer's .env holds
os.environ["OPENAI_API_KEY"] = ""
os.environ.pop("ROUTING_BASE_URL", None)
