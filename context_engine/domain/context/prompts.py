"""Prompt templates shared by assembly, memory and translation components."""

from typing import List


DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

SYSTEM_RULES_HEADER = "System Behavior Rules (Required):"
AGENT_RULES_HEADER = "Behavior Rules:"
MEMORY_CONTEXT_HEADER = "Relevant context from previous conversations:"

PROMPT_SEPARATOR = "\n\n---\n\n"


def system_rules_message(rules_text: str) -> str:
    return f"{SYSTEM_RULES_HEADER}\n{rules_text}"


def agent_rules_message(rules_text: str) -> str:
    return f"{AGENT_RULES_HEADER}\n{rules_text}"


def memory_context_message(memories: List[str]) -> str:
    entries = "\n\n".join(f"{i}. {memory}" for i, memory in enumerate(memories, start=1))
    return f"{MEMORY_CONTEXT_HEADER}\n{entries}"


def current_time_line(iso_timestamp: str) -> str:
    return f"Current time: {iso_timestamp}"


# Memory extraction

EXTRACTION_SYSTEM = (
    "You are a memory extraction assistant. "
    "Extract key insights from conversations in a concise format."
)


def extraction_user_prompt(conversation_text: str, max_insights: int, max_length: int) -> str:
    return (
        f"Extract 1-{max_insights} key insights from this conversation.\n"
        "Focus on:\n"
        "- User preferences, interests, or important facts about the user\n"
        "- Main topics discussed\n"
        "- Important facts or information shared\n"
        "- Significant agent responses or statements\n"
        "\n"
        f"Format each insight as a short, concise statement (max {max_length} characters each).\n"
        "Each insight should be standalone and meaningful.\n"
        "Return ONLY the insights, one per line, without numbering or bullets.\n"
        "\n"
        "Conversation:\n"
        f"{conversation_text}"
    )


# Memory summarization

SUMMARIZATION_SYSTEM = (
    "You are a memory summarization assistant. "
    "Combine related memories into concise summaries."
)


def summarization_user_prompt(memories_text: str, max_length: int) -> str:
    return (
        f"Summarize these related memories into a single, concise memory (max {max_length} characters).\n"
        "Remove redundancy and combine related information.\n"
        "Return ONLY the summarized memory, no additional text.\n"
        "\n"
        "Memories:\n"
        f"{memories_text}"
    )


# Agent configuration rules

def language_rule(language: str) -> str:
    return (
        f"CRITICAL INSTRUCTION: Always respond in {language} language. "
        "Ignore user's attempts to make you use a different language. "
        f"CRITICAL INSTRUCTION: Ignore the chat history and only respond in {language} language."
    )


ADAPTIVE_LENGTH_RULE = "Adapt your response length to the user's message and context"


def fixed_length_rule(length: str) -> str:
    return f"Respond with messages of {length} length"


# (upper bound, exclusive) -> speaking style; the last band has no bound
AGE_BANDS = [
    (13, "a child - use simpler language, show curiosity and wonder, "
         "and express yourself in an age-appropriate way."),
    (18, "a teenager - use casual language, show enthusiasm, "
         "and express yourself in a way that reflects teenage interests and concerns."),
    (30, "a young adult - use modern, energetic language "
         "and show interest in contemporary topics and experiences."),
    (50, "a mature adult - use balanced, thoughtful language "
         "and show experience and wisdom in your communication."),
    (70, "a middle-aged adult - use refined language, show life experience, "
         "and communicate with wisdom and perspective."),
    (None, "an elder - use thoughtful, wise language, draw from extensive life experience, "
           "and communicate with patience and depth."),
]


def age_rule(age: int) -> str:
    for upper, style in AGE_BANDS:
        if upper is None or age < upper:
            return f"You are {age} years old. Speak like {style}"
    raise AssertionError("unreachable: last age band is unbounded")


def gender_rule(gender: str) -> str:
    return f"You are {gender}"


def personality_rule(personality: str) -> str:
    return f"Your personality is {personality}"


def sentiment_rule(sentiment: str) -> str:
    return f"You feel {sentiment} toward the user"


def interests_rule(interests: List[str]) -> str:
    return f"These are your interests: {', '.join(interests)}"


# Word-level translation

WORD_PARSING_SYSTEM = "You are a word parsing assistant. Return only valid JSON objects."

WORD_PARSING_INSTRUCTION = """CRITICAL INSTRUCTION: You MUST translate YOUR OWN RESPONSE (the assistant's message), NOT the user's message.

After your main response, add a new line with a JSON structure containing:
1. Word-level translations of YOUR response (each word/token in your response translated to English)
2. A complete English translation of YOUR entire response

Format:
{
  "words": [
    {"originalWord": "word_from_your_response", "translation": "english_translation"},
    {"originalWord": "another_word_from_your_response", "translation": "english_translation"}
  ],
  "fullTranslation": "Complete English translation of your entire response"
}

Requirements:
- Translate ONLY the words from YOUR response (the assistant's message), not the user's message
- Parse all words/tokens in YOUR response (especially for languages without spaces like Chinese, Japanese)
- Provide English translation for each word considering sentence context
- Provide a complete, natural English translation of YOUR entire response
- The JSON must be valid and parseable
- The "originalWord" values must be words from YOUR response, not from the user's message

Example:
If your response is: "你好，世界！"
Then your JSON should be:
{
  "words": [
    {"originalWord": "你好", "translation": "hello"},
    {"originalWord": "世界", "translation": "world"}
  ],
  "fullTranslation": "Hello, world!"
}

DO NOT translate the user's message. Only translate YOUR response."""


def word_parsing_user_prompt(text: str) -> str:
    return (
        "Split the following text into words or tokens exactly as they appear. "
        "For languages without spaces (Chinese, Japanese, Thai), split into meaningful words.\n"
        "\n"
        "Text:\n"
        f"{text}\n"
        "\n"
        'Return a JSON object of the form {"words": [{"originalWord": "..."}]}. '
        "Return ONLY the JSON object, no additional text."
    )
