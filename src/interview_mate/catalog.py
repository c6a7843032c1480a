"""Question banks for each interview type."""

from __future__ import annotations

import logging
from typing import Dict, Tuple

from .config import InterviewType, Language
from .schema import FlagEquals, PRIOR_EXPERIENCE_FLAG, Question, Section, Stage

logger = logging.getLogger(__name__)


def _q(question_id: str, text: str, *checkpoints: str) -> Question:
    return Question(id=question_id, text=text, checkpoints=tuple(checkpoints))


STANDARD_NOTICES_EN: Tuple[str, ...] = (
    "Elleo Group complies with legal regulations, and all wages are "
    "automatically deposited every two weeks. (No cash payments)",
    "Annual Leave and Superannuation are legally applied, making the actual "
    "value higher than the base pay.",
    "Legal minimum wage (Rate) may vary based on age.",
    "Store operating hours are 07:00 ~ 17:30, and work schedules are "
    "adjusted accordingly.",
    "For Working Holiday visa holders, maximum weekly work hours cannot "
    "exceed 42 hours per internal policy.",
    "Employment starts as part-time, with opportunities for full-time "
    "transition and visa sponsorship based on performance.",
    "The first hour of work is a trial to check job suitability and is unpaid.",
    "A minimum notice of 2 weeks is required before resignation for handover.",
    "A 6-month probation period applies, during which both the company and "
    "the employee can terminate the contract.",
)

HR_NOTICES_EN: Tuple[str, ...] = (
    "Elleo Group complies with legal regulations, and all wages are "
    "automatically deposited every two weeks. (No cash payments)",
    "Annual Leave and Superannuation are legally applied, so the actual value "
    "received is higher than the base rate.",
    "Please note that legal minimum wage rates vary by age.",
    "Store operating hours are 07:00 ~ 17:30, and schedules will be adjusted "
    "accordingly.",
    "For Working Holiday visa holders, weekly working hours cannot exceed 42 "
    "hours due to legal restrictions.",
    "Employment starts as part-time, with opportunities for full-time "
    "conversion and visa sponsorship based on performance.",
    "The first 4 hours are a trial to check work suitability and are unpaid.",
    "A minimum of 2 weeks notice is required before resignation for handover.",
    "A 6-month probation period applies after joining, during which both the "
    "company and employee can decide to end the contract.",
)


STANDARD_STAGES_EN: Tuple[Stage, ...] = (
    Stage(
        id="stage1",
        title="1단계: 지원 동기 및 목표",
        description="지원자의 목표와 회사 방향성의 적합성을 확인합니다.",
        sections=(
            Section(
                id="s1_motivation",
                questions=(
                    _q(
                        "q1_1",
                        "Could you briefly introduce yourself and tell us how "
                        "you came to apply for Sushia?",
                        "Sincerity of Motivation",
                    ),
                    _q(
                        "q1_2",
                        "What brought you to Australia, and what are your "
                        "plans for staying here?",
                        "Sustainability of Employment",
                    ),
                    _q(
                        "q1_3",
                        "Is there any personal experience or goal you would "
                        "like to achieve while working here?",
                        "Willingness to Grow",
                    ),
                    _q(
                        "q1_4",
                        "Where do you see yourself in about 1 or 3 years?",
                        "Career Vision & Attitude",
                    ),
                ),
            ),
        ),
    ),
    Stage(
        id="stage2",
        title="2단계: 경력 및 직무 역량",
        description="이전 경험을 바탕으로 실제 업무 수행 가능성을 확인합니다.",
        sections=(
            Section(
                id="s2_common",
                questions=(
                    _q(
                        "q2_1",
                        "Where have you worked the longest, and what were your "
                        "main responsibilities there?",
                        "Responsibility",
                    ),
                    _q(
                        "q2_2",
                        "What was the biggest reason for leaving that job?",
                        "Stability of Reason for Leaving",
                    ),
                ),
            ),
            Section(
                id="s2_experienced",
                condition=FlagEquals(PRIOR_EXPERIENCE_FLAG, True),
                questions=(
                    _q(
                        "q2_3",
                        "Among Roll, Nigiri, Sashimi, and Hot Food, which part "
                        "are you most confident in? How long have you "
                        "experienced each part?",
                        "Practical Proficiency",
                    ),
                    _q(
                        "q2_4",
                        "Do you have experience processing salmon from Oroshi "
                        "to Sashimi? (Fillet, Slice, Portion differentiation)",
                        "Technical Proficiency",
                    ),
                    _q(
                        "q2_5",
                        "Do you have your own know-how for managing priorities "
                        "when orders pile up?",
                        "Multitasking Ability",
                    ),
                ),
            ),
            Section(
                id="s2_junior",
                condition=FlagEquals(PRIOR_EXPERIENCE_FLAG, False),
                questions=(
                    _q(
                        "q2_6",
                        "When learning something new or unfamiliar, how would "
                        "you describe your learning speed?",
                        "Learning Adaptability",
                    ),
                    _q(
                        "q2_7",
                        "This job involves repetitive tasks and standing for "
                        "long periods. Is this okay physically?",
                        "Physical Suitability",
                    ),
                ),
            ),
        ),
    ),
    Stage(
        id="stage3",
        title="3단계: 성격 및 팀워크",
        description="팀 환경에서의 소통 방식과 스트레스 대응 방식을 확인합니다.",
        sections=(
            Section(
                id="s3_personality",
                questions=(
                    _q(
                        "q3_1",
                        "What keywords best describe your personality? "
                        "Feedback from others is also fine.",
                        "Self-Awareness",
                    ),
                    _q(
                        "q3_2",
                        "How do you usually manage your condition when busy or "
                        "stressed?",
                        "Stress Management",
                    ),
                    _q(
                        "q3_3",
                        "How do you usually resolve disagreements with team "
                        "members or supervisors?",
                        "Communication Style",
                    ),
                    _q(
                        "q3_4",
                        "Do you prefer an environment with well-organized "
                        "rules or a relatively free atmosphere?",
                        "Organizational Culture Fit",
                    ),
                ),
            ),
        ),
    ),
    Stage(
        id="stage4",
        title="4단계: 근무 조건 및 일정",
        description="근무 가능 일정과 조건을 확인하여 실제 근무 가능 여부를 조율합니다.",
        sections=(
            Section(
                id="s4_logistics",
                questions=(
                    _q(
                        "q4_1",
                        "How would you rate your basic English communication "
                        "skills required for work?",
                        "Communication Level",
                    ),
                    _q("q4_2", "When can you start working?", "Start Date"),
                    _q(
                        "q4_3",
                        "Are there any days or times when you regularly cannot "
                        "work?",
                        "Schedule Constraints",
                    ),
                    _q(
                        "q4_4",
                        "How many hours per week do you hope to work?",
                        "Available Hours",
                    ),
                    _q(
                        "q4_5",
                        "Do you have a specific hourly rate or annual salary in "
                        "mind?",
                        "Salary Negotiation",
                    ),
                    _q(
                        "q4_6",
                        "How do you plan to commute, and how long does it take?",
                        "Commute Stability",
                    ),
                    _q(
                        "q4_7",
                        "Is there anything else you would like to share "
                        "regarding the company or work?",
                        "Additional Risks",
                    ),
                ),
            ),
        ),
    ),
    Stage(
        id="stage5",
        title="5단계: 필수 고지사항",
        description="회사의 주요 운영 방침과 혜택, 필수 안내 사항에 대한 최종 확인 단계입니다.",
        kind="notice",
        sections=(
            Section(
                id="s5_notice",
                notices=STANDARD_NOTICES_EN,
                require_consent=True,
            ),
            Section(
                id="s5_evaluation",
                title="Candidate Evaluation",
                questions=(
                    _q(
                        "q5_eval",
                        "What was the overall attitude and impression of the "
                        "candidate? (Interviewer's Evaluation)",
                        "Overall Impression",
                        "Attitude and Sincerity",
                    ),
                ),
            ),
        ),
    ),
)


HR_STAGES_EN: Tuple[Stage, ...] = (
    Stage(
        id="stage1",
        title="1단계: 인성 및 가치관",
        sections=(
            Section(
                id="s1_a",
                title="A. 개인 캐릭터 / 성격 구조 질문",
                questions=(
                    _q("q1_1", "What are 3 keywords that you think describe your personality?", "Self-Awareness"),
                    _q("q1_2", "If a close friend defined you in one sentence, what would it be?", "Self-Awareness"),
                    _q("q1_3", "What is your reaction pattern when stressed?", "Emotional Control"),
                    _q("q1_4", "How do you usually process your anger when you contain it?", "Emotional Control"),
                    _q(
                        "q1_5",
                        "When was the warmest or coldest moment in your life?",
                        "Self-Reflection",
                        "Defensiveness",
                    ),
                    _q(
                        "q1_6",
                        "Are there any signals your body or mind sends when you "
                        "feel completely burned out?",
                        "Self-Awareness",
                        "Emotional Control",
                    ),
                    _q(
                        "q1_7",
                        "Have you ever had an unexpected 'break' in your life? "
                        "How did you get back to normal?",
                        "Self-Reflection",
                        "Problem Solving",
                    ),
                ),
            ),
            Section(
                id="s1_b",
                title="B. 성장배경 / 가정환경",
                questions=(
                    _q(
                        "q1_8",
                        "Is there anything in your upbringing or background that "
                        "you feel has influenced you?",
                        "Responsibility Structure",
                    ),
                    _q(
                        "q1_9",
                        "Are there any values or habits you naturally learned "
                        "from your family or upbringing that help you now?",
                        "Relationship Building",
                    ),
                    _q(
                        "q1_10",
                        "When you have difficulties or worries, who or what do "
                        "you usually rely on first?",
                        "Dependent vs Independent",
                    ),
                ),
            ),
            Section(
                id="s1_c",
                title="C. 삶의 태도 / 내적 기준",
                questions=(
                    _q("q1_11", "Do you have a motto or personal standard that guides your life?", "Growth Mindset"),
                    _q(
                        "q1_12",
                        "When was the most difficult moment in your life, and "
                        "how did you overcome it?",
                        "Problem Solving",
                        "Avoidance vs Confrontation",
                    ),
                    _q(
                        "q1_13",
                        "Could you share an event or experience that you feel "
                        "made you grow?",
                        "Victim Mentality",
                    ),
                ),
            ),
        ),
    ),
    Stage(
        id="stage2",
        title="2단계: 조직 적응력 및 문화",
        sections=(
            Section(
                id="s2_a",
                title="A. 팀워크 구조",
                questions=(
                    _q(
                        "q2_1",
                        "What role or position do you usually take when working "
                        "in a team?",
                        "Leader/Supporter/Mediator/Executor",
                    ),
                    _q(
                        "q2_2",
                        "How do you usually respond to disagreements or "
                        "conflicts in a team?",
                        "Communication Style",
                        "Authority Perception",
                    ),
                    _q("q2_3", "How do you express your opinion during a conflict?", "Communication Style"),
                    _q(
                        "q2_4",
                        "Do you have your own way of expressing disagreement "
                        "with a supervisor?",
                        "Vertical Relationship Perception",
                    ),
                    _q(
                        "q2_5",
                        "How do you feel when starting work without being "
                        "perfectly prepared?",
                        "Acceptance",
                    ),
                    _q("q2_6", "Alone vs Team, which environment do you prefer?", "Organizational Adaptability"),
                    _q(
                        "q2_7",
                        "If you were a leader, what type of team member would "
                        "you find most difficult to handle?",
                        "Organizational Adaptability",
                    ),
                ),
            ),
            Section(
                id="s2_b",
                title="B. 조직 문화 적응력 질문",
                questions=(
                    _q(
                        "q2_8",
                        "Could you share the most difficult organizational "
                        "culture you adapted to and the one that fit you best?",
                        "Rule Acceptance",
                        "System Adaptability",
                        "Culture Fit",
                    ),
                    _q(
                        "q2_9",
                        "Which fits you better: an organization with many rules "
                        "or a free one?",
                        "Mindset Type",
                    ),
                ),
            ),
        ),
    ),
    Stage(
        id="stage3",
        title="3단계: 직무 역량 (Skill)",
        sections=(
            Section(
                id="s3_a",
                title="기술 레벨",
                questions=(
                    _q("q3_1", "How many rolls can you cover during peak time?", "Speed"),
                    _q("q3_2", "Do you have your own way to reduce mistakes during a rush?", "Speed & Accuracy"),
                    _q("q3_3", "What is the most important point when doing Sashimi?", "Detail Awareness"),
                    _q("q3_4", "What do you think is the most important hygiene standard?", "Detail Awareness"),
                    _q("q3_5", "Do you have experience preparing Salmon Sashimi yourself?", "Skill/Experience Depth"),
                    _q(
                        "q3_6",
                        "Can you distinguish between Fillet / Slice / Portion "
                        "work experience?",
                        "Skill/Experience Depth",
                    ),
                    _q(
                        "q3_7",
                        "What is your criterion for setting priorities when "
                        "orders pile up?",
                        "Multitasking",
                    ),
                    _q("q3_8", "How many stations can you cover simultaneously?", "Multitasking"),
                ),
            ),
        ),
    ),
    Stage(
        id="stage4",
        title="4단계: 경력 및 비전",
        sections=(
            Section(
                id="s4_a",
                title="A. 경력 사항 및 이력",
                questions=(
                    _q(
                        "q4_1",
                        "What was your longest-serving company or role? What "
                        "were your main responsibilities?",
                        "Turnover Pattern",
                    ),
                    _q(
                        "q4_2",
                        "Could you briefly tell us why you left that job? Did "
                        "you realize anything?",
                        "Recurring Reason",
                    ),
                    _q(
                        "q4_3",
                        "How was your relationship with your boss or colleagues?",
                        "Relationship Maintenance",
                    ),
                ),
            ),
            Section(
                id="s4_b",
                title="B. 미래 비전 및 목표",
                questions=(
                    _q("q4_4", "Imagine yourself working one year from now?", "Growth Willingness", "Career Goal"),
                    _q("q4_5", "What about your life in 3 years?", "Motivation Type", "Retention Possibility"),
                    _q("q4_6", "What do you want to gain from this job?", "Growth Willingness", "Career Goal"),
                    _q("q4_7", "What does this job mean for your career?", "Long-term Fit", "Career Goal"),
                ),
            ),
        ),
    ),
    Stage(
        id="stage5",
        title="5단계: 필수 고지사항",
        kind="notice",
        sections=(
            Section(
                id="s5_notice",
                notices=HR_NOTICES_EN,
                require_consent=True,
            ),
        ),
    ),
)


STAGE_CATALOG: Dict[Tuple[InterviewType, Language], Tuple[Stage, ...]] = {
    (InterviewType.STANDARD, Language.EN): STANDARD_STAGES_EN,
    (InterviewType.HR, Language.EN): HR_STAGES_EN,
    (InterviewType.DEPTH, Language.EN): HR_STAGES_EN,
}


def resolve_stages(
    interview_type: InterviewType,
    language: Language = Language.EN,
) -> Tuple[Stage, ...]:
    """Return the question bank for an interview type and language."""

    stages = STAGE_CATALOG.get((interview_type, language))
    if stages is not None:
        return stages
    logger.debug(
        "No %s question bank for %s; using English.",
        language.value,
        interview_type.value,
    )
    return STAGE_CATALOG[(interview_type, Language.EN)]
