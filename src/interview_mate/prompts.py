"""Prompt scaffolding for the interview analysis request."""

from __future__ import annotations

from typing import List, Sequence

from .models import InterviewRecord
from .schema import Stage, iter_questions

DEFAULT_ORGANIZATION = "Elleo Group"

SYSTEM_PROMPT = (
    "You are an expert HR interviewer who writes concise, structured Korean "
    "interview reports in Markdown."
)

ANALYSIS_TEMPLATE = """You are an expert HR Interviewer for {organization}.

[Core Persona & Hiring Stance]
- You are a helpful HR expert for {organization}.
- Your stance is **Generous and Practical**. Focus on "Trainability" and "Growth Potential".
- Your goal is to provide actionable tips for managers to train new hires.
- **Weekend Work Policy**: Weekend (Sat/Sun) work is **NOT** mandatory. Do not mark unavailability on weekends as a negative point or a "Concern Area".

[Handling insincere or low-quality answers]
- If the candidate's answers are nonsensical (e.g. "ㅋㅋㅋ"), extremely short or irrelevant:
  1. Do NOT invent strengths.
  2. In the "**핵심 강점**" section state: "답변이 불성실하여 강점을 파악할 수 없음."
  3. Mark "**우려 사항**" as critical due to lack of sincerity.
  4. In "**종합 의견**", strongly advise against hiring.
  5. The final recommendation MUST be "**비추천**".

[Formatting rules]
1. Write the report in Korean using Markdown.
2. Start the report with this exact sentence: **'{name}'님의 인터뷰 분석 결과**
3. Never mention internal store situations such as staffing shortages, and never describe your own reasoning process.
4. Use natural, professional Korean. No English except "{organization}" and "AI".
5. No extra preamble or closing text.

[Output structure - use this exact numbering]
1. **핵심 강점**: Focus on potential and attitude.
2. **우려 사항**: Be objective but focus on trainable points.
3. **조직 적합성**: Assess alignment with team culture.
4. **온보딩 & 코칭 가이드**: Provide 2-3 specific, actionable tips as bullet points (- ).
5. **종합 의견**: Final perspective.
   - The last line must follow the format "최종 추천 여부: [추천/보류/비추천]".

{context}"""


def build_interview_context(record: InterviewRecord, stages: Sequence[Stage]) -> str:
    """Describe the candidate and every answered question.

    Returns an empty string when no free-text answer is recorded.
    """

    entries: List[str] = []
    for question in iter_questions(stages):
        answer = record.answers.text(question.id).strip()
        if not answer:
            continue
        entry = [f"Q: {question.text}"]
        if question.checkpoints:
            entry.append(f"Checkpoints: {', '.join(question.checkpoints)}")
        entry.append(f"Interviewer Note/Answer: {answer}")
        entries.append("\n".join(entry))

    if not entries:
        return ""

    info = record.basic_info
    header = [
        f"Candidate Name: {info.name}",
        f"Position: {info.position}",
        "Interview Content:",
    ]
    return "\n".join(header) + "\n\n" + "\n\n".join(entries)


def build_analysis_prompt(
    record: InterviewRecord,
    stages: Sequence[Stage],
    organization: str = DEFAULT_ORGANIZATION,
) -> str:
    context = build_interview_context(record, stages)
    return ANALYSIS_TEMPLATE.format(
        organization=organization,
        name=record.basic_info.name.strip(),
        context=context,
    )
