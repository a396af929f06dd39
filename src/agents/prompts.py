"""Fixed prompt templates, one builder per tool.

Option arguments are looked up in small tables; unknown values fall back to
the table default instead of failing.
"""

from __future__ import annotations

ESSAY_TYPES = {
    "argumentative": "an argumentative essay with a clear thesis and supporting evidence",
    "descriptive": "a descriptive essay with vivid details and sensory language",
    "narrative": "a narrative essay that tells a story or recounts an experience",
    "expository": "an expository essay that explains or informs about the topic",
    "persuasive": "a persuasive essay that convinces the reader of a particular viewpoint",
}

ESSAY_LENGTHS = {
    "short": "300-500 words",
    "medium": "500-800 words",
    "long": "800-1200 words",
}

EXPLAIN_STYLES = {
    "metaphor": "using metaphors and analogies",
    "story": "as a story or narrative",
    "simple": "in simple, everyday language",
    "technical": "with technical details and examples",
    "visual": "with visual descriptions and imagery",
}

EMAIL_TONES = {
    "formal": "formal and professional",
    "casual": "casual and friendly",
    "confident": "confident and assertive",
    "polite": "polite and courteous",
    "enthusiastic": "enthusiastic and energetic",
}

EMAIL_ACTIONS = {
    "write": "write a new email",
    "rewrite": "rewrite this email",
    "improve": "improve this email",
    "shorten": "shorten this email",
    "expand": "expand this email",
}

_ESSAY_TOOL_PROMPTS = {
    "outline": """Create a detailed, well-structured outline for this essay. Include main points, subpoints, and key arguments. Format it clearly with proper indentation and numbering:

Essay: {text}

Please provide:
1. Introduction outline
2. Main body points with subpoints
3. Conclusion outline
4. Key themes and arguments identified""",
    "format": """Please format and improve the structure of this essay. Make it more readable with proper paragraph breaks, clear topic sentences, and logical flow. Also suggest improvements for clarity and coherence:

Essay: {text}

Please provide:
1. Formatted version with proper structure
2. Suggestions for improvement
3. Grammar and style recommendations""",
    "improve": """Please improve this essay by enhancing the arguments, adding more detail where needed, improving the writing style, and making it more compelling. Keep the original message but make it stronger:

Essay: {text}

Please provide:
1. Improved version with enhanced arguments
2. Specific improvements made
3. Suggestions for further development""",
    "summarize": """Please provide a comprehensive summary of this essay, including the main arguments, key points, and conclusions:

Essay: {text}

Please provide:
1. Executive summary (2-3 sentences)
2. Key arguments and points
3. Main conclusions
4. Overall assessment""",
}

ESSAY_TOOL_MODES = tuple(_ESSAY_TOOL_PROMPTS)


def essay_prompt(topic: str, essay_type: str | None = None, length: str | None = None) -> str:
    selected_type = ESSAY_TYPES.get(essay_type or "", ESSAY_TYPES["expository"])
    selected_length = ESSAY_LENGTHS.get(length or "", ESSAY_LENGTHS["medium"])
    return f"""Write {selected_type} about "{topic}".

Requirements:
- Length: {selected_length}
- Well-structured with introduction, body paragraphs, and conclusion
- Clear, engaging writing style
- Proper grammar and flow
- Include relevant examples or evidence where appropriate

Please write a complete essay that meets these requirements."""


def essay_tool_prompt(text: str, mode: str | None = None) -> str:
    template = _ESSAY_TOOL_PROMPTS.get(mode or "", _ESSAY_TOOL_PROMPTS["outline"])
    return template.format(text=text)


def essay_draft_prompt(thesis: str) -> str:
    return f"""Write a complete five-paragraph essay draft that argues the following thesis.

Thesis: {thesis}

Return ONLY a JSON object with this exact structure:
{{
  "thesis": "The refined thesis statement",
  "introduction": "Introduction paragraph",
  "body_paragraphs": [
    {{"title": "Body Paragraph 1", "content": "First supporting paragraph"}},
    {{"title": "Body Paragraph 2", "content": "Second supporting paragraph"}},
    {{"title": "Body Paragraph 3", "content": "Third supporting paragraph"}}
  ],
  "conclusion": "Conclusion paragraph",
  "outline": "A short bullet outline of the essay"
}}"""


def explain_prompt(topic: str, style: str | None = None) -> str:
    selected_style = EXPLAIN_STYLES.get(style or "", EXPLAIN_STYLES["simple"])
    return f"""Explain the following topic {selected_style}. Make it engaging and easy to understand:

Topic: {topic}

Please provide a clear, well-structured explanation that helps someone understand this concept."""


def email_prompt(content: str, tone: str | None = None, action: str | None = None) -> str:
    selected_tone = EMAIL_TONES.get(tone or "", EMAIL_TONES["polite"])
    selected_action = EMAIL_ACTIONS.get(action or "", EMAIL_ACTIONS["rewrite"])
    label = "Email content to write:" if action == "write" else "Original email:"
    return f"""{selected_action} in a {selected_tone} tone.

{label}
{content}

Please {selected_action} maintaining the {selected_tone} tone while ensuring clarity and professionalism."""


def answer_critic_prompt(answer: str, question: str | None = None) -> str:
    return f"""You are a harsh but helpful critic. Review this answer to the question and provide brutally honest feedback.

Question: {question or 'General question'}

Answer: {answer}

Provide feedback that is:
1. Harsh and critical - point out flaws, weaknesses, and areas for improvement
2. Constructive - explain WHY something is wrong and HOW to fix it
3. Specific - don't just say "this is wrong", explain exactly what's wrong
4. Educational - help the person learn from their mistakes

Be direct, honest, and tough but fair. Focus on helping them improve."""


def coding_quiz_prompt(code: str, quiz_id: str) -> str:
    return f"""Analyze the following code and create a coding quiz with 5 multiple choice questions that test understanding of the code's logic, syntax, and concepts.

Code:
```
{code}
```

Generate a JSON response with this exact structure:
{{
  "quiz": {{
    "id": "{quiz_id}",
    "questions": [
      {{
        "id": "q1",
        "question": "What is the main purpose of this code?",
        "options": [
          "To calculate the sum of all numbers in an array",
          "To sort the array in ascending order",
          "To find the maximum value in the array",
          "To remove duplicate elements from the array"
        ],
        "correct_answer": 0,
        "explanation": "This code iterates through the array and adds each element to a running total, effectively calculating the sum."
      }}
    ],
    "total_questions": 5
  }}
}}

IMPORTANT REQUIREMENTS:
1. Analyze the ACTUAL code provided above
2. Create questions that are SPECIFIC to this code's functionality
3. Make all 4 options plausible but only one correct
4. Questions should test: logic flow, syntax, edge cases, algorithms, data structures
5. Explanations should be educational and explain WHY the answer is correct
6. correct_answer should be the 0-based index (0, 1, 2, or 3) of the correct option
7. Do NOT use generic placeholders like "Option A", "Option B" - write actual answers
8. Make sure the questions and answers are relevant to the specific code provided

Return ONLY the JSON, no other text or explanations."""


def quiz_prompt(quiz_type: str, content: str, count: int, mode: str) -> str:
    source = "based on these class notes/slides" if mode == "notes" else "about this topic"
    label = "Class Notes/Slides" if mode == "notes" else "Topic"

    if quiz_type == "short-answer":
        return f"""Create {count} short-answer questions {source}. The questions should require brief but thoughtful responses that demonstrate understanding of the material.

{label}: {content}

Please format the quiz as follows:
1. Question 1: [Question text]
   Expected Answer: [Brief expected response]

2. Question 2: [Question text]
   Expected Answer: [Brief expected response]

[Continue format...]

Make sure the questions test comprehension, application, and analysis of the key concepts."""

    return f"""Create {count} multiple-choice questions {source}. Each question should have 4 options (A, B, C, D) with only one correct answer. Make sure the questions test understanding of key concepts.

{label}: {content}

Please format the quiz as follows:
1. Question 1
   A) Option A
   B) Option B
   C) Option C
   D) Option D
   Correct Answer: A

2. Question 2
   A) Option A
   B) Option B
   C) Option C
   D) Option D
   Correct Answer: B

[Continue format...]

Make sure the questions are clear, relevant to the material, and test different aspects of the content."""
