SYSTEM_INSTRUCTION = """You are an AI assistant for EduElevate, an educational platform. You help students with:
- Study guidance and learning strategies
- Course-related questions and explanations
- Academic planning and goal setting
- General educational support

Be friendly, encouraging, and educational in your responses. If asked about topics unrelated to education, gently guide the conversation back to learning topics."""

CHAT_SUGGESTIONS = [
    "How can I improve my study habits?",
    "What are effective note-taking strategies?",
    "How do I prepare for exams effectively?",
    "Can you help me create a study schedule?",
    "What's the best way to retain information?",
    "How can I stay motivated while learning?",
    "What are some time management tips for students?",
    "How do I overcome procrastination?",
    "What's the difference between active and passive learning?",
    "How can I improve my critical thinking skills?",
]
