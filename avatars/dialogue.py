"""Templated avatar dialogue. Placeholder for a real text-generation backend."""

import logging

logger = logging.getLogger("avatarengine.avatars.dialogue")

_INTROS: dict[str, str] = {
    "metaphorical": "Greetings! I am {name}, your metaphorical mentor.",
    "mnemonic": "Hello! I'm {name}, here to help you remember things better!",
    "visual": "Hi! I'm {name}, your visual guide.",
    "logical": "Hello! I'm {name}, your logical assistant.",
    "cartoon": "Hey there! I'm {name}, your friendly cartoon avatar!",
    "cyberpunk": "Greetings, human. I am {name}, your digital guide.",
    "futuristic": "Hello, human. I am {name}, your futuristic companion.",
    "default": "Hi! I'm {name}, your avatar.",
}


def generate_for_avatar(name: str, style: str, context: str) -> str:
    intro = _INTROS.get(style, _INTROS["default"]).format(name=name)
    logger.info("Generated dialogue for %s", name)
    return f"{intro} I'm here to help you with {context}. How can I assist you today?"
