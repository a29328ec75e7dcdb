from typing import Sequence

from models.chat_schema import ChatMessage, Language, QueryCategory

PERSONAS = {
    Language.urdu: "آپ ایک پاکستانی قانونی معاون ہیں۔ صرف قانونی سوالات کا جواب دیں۔ اگر سوال قانون سے متعلق نہیں ہے، تو شائستگی سے انکار کریں۔",
    Language.roman_urdu: (
        "Aap ek Pakistani legal assistant hain. Sirf legal sawalat ka jawab dein Roman Urdu mein. "
        "Agar sawal law se related nahi hai, to shayasta tareeqe se inkaar karein."
    ),
    Language.english: (
        "You are a Pakistani legal assistant. Only answer law-related questions in English. "
        "If the question is not related to law, politely decline."
    ),
}

DECLINE_MESSAGES = {
    Language.urdu: "معذرت، میں صرف قانونی معاملات میں مدد کر سکتا ہوں۔ براہ کرم کوئی قانونی سوال پوچھیں۔",
    Language.roman_urdu: "Maazrat, main sirf legal matters mein madad kar sakta hoon. Koi legal sawal poochain.",
    Language.english: "I can only provide assistance related to law and legal cases. Please ask a legal question.",
}

ERROR_MESSAGES = {
    Language.urdu: "معذرت، اس وقت جواب دینے میں مسئلہ ہو رہا ہے۔ براہ کرم دوبارہ کوشش کریں۔",
    Language.roman_urdu: "Maazrat, is waqt jawab dene mein masla ho raha hai. Dobara koshish karein.",
    Language.english: "Sorry, I'm having trouble processing your request right now. Please try again.",
}

STYLE_GUIDANCE = {
    QueryCategory.greeting: (
        "The user is greeting you. Reply warmly in one or two sentences, introduce yourself as a "
        "legal assistant and invite them to ask a legal question."
    ),
    QueryCategory.legal: (
        "Provide a detailed, professional legal answer based on Pakistani law. If database context is "
        "provided, use it primarily and refer to items by their number. Otherwise, use your general legal "
        "knowledge about Pakistan. Recommend consulting a lawyer for case-specific decisions."
    ),
    QueryCategory.off_topic: (
        "The question is outside the legal domain. Politely decline and ask for a legal question instead."
    ),
}


def system_instruction(language: Language) -> str:
    return PERSONAS.get(language, PERSONAS[Language.english])


def decline_message(language: Language) -> str:
    return DECLINE_MESSAGES.get(language, DECLINE_MESSAGES[Language.english])


def error_message(language: Language) -> str:
    return ERROR_MESSAGES.get(language, ERROR_MESSAGES[Language.english])


def format_history(history: Sequence[ChatMessage]) -> str:
    lines = []
    for message in history:
        speaker = "User" if message.role == "user" else "Assistant"
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines)


def build_prompt(
    query: str,
    language: Language,
    context_block: str,
    category: QueryCategory,
    history: Sequence[ChatMessage] = (),
) -> str:
    """
    Assemble the user-turn prompt sent alongside the persona system instruction.

    ``context_block`` is the already numbered and truncated context text.
    """
    sections = [system_instruction(language)]

    if history:
        sections.append(f"CONVERSATION SO FAR:\n{format_history(history)}")

    if context_block:
        sections.append(f"Relevant information from database:\n{context_block}")

    sections.append(f"User Query: {query}")
    sections.append(f"RESPONSE GUIDANCE:\n{STYLE_GUIDANCE[category]}")

    return "\n\n".join(sections).strip()
