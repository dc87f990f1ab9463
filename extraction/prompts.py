"""LLM prompt templates for document structure extraction."""
from typing import Optional


PARSE_DOCUMENT_SYSTEM_PROMPT = """You are an expert at parsing ancient religious texts and scriptures.
Your task is to recover the hierarchical structure of the text: the book, its chapters (or sections), and the verses within each chapter.

For every verse provide:
1. **number**: The verse number within its chapter
2. **originalText**: The verse in its original language, exactly as written
3. **translation**: An English translation (copy the text if it is already English)

For every chapter provide its **number** and a short **title**.

Return the result as a single JSON object matching this structure:
```json
{
  "title": "Book title",
  "description": "Brief description of the text",
  "language": "Primary language (e.g. Sanskrit, Pali)",
  "chapters": [
    {
      "number": 1,
      "title": "Chapter title",
      "verses": [
        {
          "number": 1,
          "originalText": "Text in original language",
          "translation": "English translation"
        }
      ]
    }
  ]
}
```

Use the chapter and verse numbers printed in the source whenever they exist.
Escape every backslash and double quote inside string values.

Return ONLY the JSON object, no additional text."""


def build_user_prompt(
    text: str,
    index: Optional[int] = None,
    total: Optional[int] = None
) -> str:
    """Generate the user prompt for one extraction unit.

    Args:
        text: Unit text
        index: Zero-based chunk index, None for a whole document
        total: Total number of chunks

    Returns:
        Formatted prompt string
    """
    if index is None or total is None:
        return f"Parse this religious text:\n\n{text}"

    return (
        f"Parse this religious text (part {index + 1} of {total}):\n\n"
        f"{text}\n\n"
        "Return chapters and verses found in this section."
    )
