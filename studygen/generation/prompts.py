"""
Prompt templates for the study item generators.

Two stages per item kind:
  RAW_*        -- free-text generation per chunk (Fanar).  JSON is not
                  requested here; structure is imposed by the second pass.
  STRUCTURE_*  -- schema-constrained conversion of the joined raw text (OpenAI).

Keeping templates in a separate module makes them easy to iterate on
without touching generation logic.
"""

# ---------------------------------------------------------------------------
# Quiz: raw generation
# ---------------------------------------------------------------------------

QUIZ_RAW_SYSTEM_PROMPT = """\
You are an expert educator creating quiz questions. Generate EXACTLY {count} \
{difficulty} difficulty quiz questions about the provided content.

If generating {count} questions, make sure the material you draw on is varied \
enough to support all {count} of them.

Focus on creating meaningful questions that test understanding. Include:
- Clear question text
- Plausible answer choices (4 options for multiple choice, true/false for boolean)
- The correct answer
- A brief explanation

Question types:
- multiple-choice: One correct answer from 4 options
- multi-select: Multiple correct answers from 4 options
- true-false: True or false questions
- mixed: Vary between types

Generate EXACTLY {count} questions. Write them as natural text describing each \
question, its options, the correct answer and the explanation. Do not worry \
about strict JSON format; focus on quality content with enough detail for \
{count} distinct questions."""

QUIZ_RAW_USER_PROMPT = """\
Create EXACTLY {count} {item_type} quiz questions based on this content. \
Generate {count} complete, distinct questions covering different aspects of \
the material:

{chunk_text}"""

# ---------------------------------------------------------------------------
# Quiz: structuring
# ---------------------------------------------------------------------------

QUIZ_STRUCTURE_SYSTEM_PROMPT = """\
You are a quiz content formatter. Convert the provided raw quiz content into \
a properly structured JSON format.

CRITICAL REQUIREMENT: Generate EXACTLY {count} questions. No more, no less.

REQUIREMENTS:
1. Extract EXACTLY {count} questions from the content (this is mandatory)
2. If the content has more questions, select the best {count}
3. If the content has fewer questions, create additional questions based on the content themes
4. Each question has text, type, options, correctAnswer and explanation
5. For multiple-choice and multi-select questions: use option ids "a", "b", "c", "d"
6. For true-false questions: use option ids "true", "false"
7. For single-answer questions (multiple-choice, true-false): correctAnswer is a single option id like "a"
8. For multi-select questions: correctAnswer is a comma-separated string like "a,c"
9. Every option has both "id" and "text" fields
10. Keep explanations to one sentence

Convert the content exactly as provided, keeping the original intent and \
accuracy."""

QUIZ_STRUCTURE_USER_PROMPT = """\
Convert this raw quiz content into the required JSON format with EXACTLY \
{count} questions.

Raw content:
{raw_text}

Requirements:
- Type: "{item_type}" questions
- Difficulty: "{difficulty}"
- Count: EXACTLY {count} questions (mandatory)

If the raw content does not have enough questions, create additional \
questions based on the content themes to reach exactly {count} questions."""

# ---------------------------------------------------------------------------
# Flashcards: raw generation
# ---------------------------------------------------------------------------

FLASHCARD_RAW_SYSTEM_PROMPT = """\
You are an expert educational content creator. Generate exactly {count} \
{difficulty} difficulty flashcards from the provided text.

CRITICAL REQUIREMENTS:
- Generate EXACTLY {count} flashcards - no more, no less
- Each flashcard has a clear, specific question and a complete, accurate answer
- Focus on key concepts, definitions, important facts and relationships
- Questions should test understanding, not just memorization
- Vary question types (what, how, why, when, where)
- Questions must be self-contained and not require external context

Write each flashcard as plain text:
Q: <question>
A: <answer>"""

FLASHCARD_RAW_USER_PROMPT = """\
Generate exactly {count} flashcards from this text:

{chunk_text}"""

# ---------------------------------------------------------------------------
# Flashcards: structuring
# ---------------------------------------------------------------------------

FLASHCARD_STRUCTURE_SYSTEM_PROMPT = """\
You are a flashcard formatter. Convert the provided raw flashcard content \
into a properly structured JSON format.

CRITICAL REQUIREMENT: Return EXACTLY {count} flashcards. No more, no less.

REQUIREMENTS:
1. Each flashcard has a "question" and an "answer" field
2. Drop duplicate questions
3. If the content has fewer flashcards, create additional ones from the content themes
4. Keep answers complete but concise"""

FLASHCARD_STRUCTURE_USER_PROMPT = """\
Convert this raw flashcard content into the required JSON format with \
EXACTLY {count} flashcards.
Any flashcards you add must match the "{difficulty}" difficulty of the rest.

Raw content:
{raw_text}"""

# ---------------------------------------------------------------------------
# Retry emphasis (structuring shortfall)
# ---------------------------------------------------------------------------

SHORTFALL_PREFIX = """\
CRITICAL: You MUST generate EXACTLY {count} {noun}. The previous attempt only \
generated {got}.

"""

SHORTFALL_SUFFIX = """

REMINDER: Generate EXACTLY {count} {noun} - this is mandatory."""
