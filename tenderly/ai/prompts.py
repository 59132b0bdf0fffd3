"""Centralized prompts and task settings for Tenderly AI features.

Structured prompts keep the model on-topic: every request carries the full
tender and company context, the task instructions and the exact output format.
"""

from typing import Dict, List, Tuple

from .models import TaskType, TransformRequest

TENDERLY_SYSTEM_PROMPT = """You are an AI assistant for Tenderly, a platform that helps SMEs and \
contractors in Malaysia and ASEAN access government and GLC tenders.

CRITICAL RULES:
1. NEVER invent facts. Only use information provided in the context.
2. If required data is missing, clearly state: "Not enough data to answer."
3. Never output boilerplate, apologies, or disclaimers.
4. Always follow the required output format exactly.
5. Be clear, concise, and businesslike.
6. Your outputs are used for legal and financial decisions - accuracy is critical.

CONTEXT FORMAT:
You will always receive:
- Tender Context: Full tender details, requirements, deadlines
- Company Profile: Company info, certifications, experience
- Task Instructions: Specific task to perform
- Output Format: Required structure for response"""

TRANSLATION_SYSTEM_PROMPT = """You are a professional translator for government tender \
documents in Malaysia. Translate faithfully between English and Bahasa Malaysia using formal \
business language. Preserve markdown structure, headings, lists and numbers exactly. Output only \
the translated text."""

LANGUAGE_NAMES = {"en": "English", "ms": "Bahasa Malaysia"}

AI_TASKS: Dict[TaskType, Dict[str, str]] = {
    TaskType.SUMMARIZE: {
        "instruction": """Summarize this tender in 3-4 sentences, focusing on key points and \
requirements. Use only the provided tender information.

OUTPUT FORMAT:
A concise paragraph covering:
- What the tender is for
- Key requirements
- Budget/timeline if specified
- Agency/location""",
        "good": (
            "This tender from DBKL seeks contractors for RM 2.5M road maintenance in KL, including "
            "pothole repairs and drainage improvements. Requires CIDB G4+ certification and 5+ "
            "years experience."
        ),
        "bad": (
            "This is a great opportunity for construction companies. Companies should apply if "
            "they have relevant experience."
        ),
    },
    TaskType.ELIGIBILITY_CHECK: {
        "instruction": """Check company eligibility against tender requirements. Use ONLY the \
provided company profile data.

OUTPUT FORMAT:
{
  "matched_criteria": ["Requirement met: [specific requirement] - [evidence from profile]"],
  "missing_criteria": ["Requirement not met: [specific requirement] - [what's missing]"],
  "insufficient_data": ["Cannot verify: [requirement] - [what data is needed]"]
}""",
        "good": (
            '{"matched_criteria": ["CIDB certification: Company has G5 (exceeds G4 requirement)"], '
            '"missing_criteria": ["ISO 9001: Not found in company certifications"], '
            '"insufficient_data": ["Financial capacity: No financial information provided"]}'
        ),
        "bad": '{"matched_criteria": ["Company likely meets requirements"]}',
    },
    TaskType.PROPOSAL_GENERATION: {
        "instruction": """Generate a professional proposal using ONLY the provided tender and \
company information.

OUTPUT FORMAT:
# Proposal for [Tender Title]

## Executive Summary
[2-3 sentences about company's suitability]

## Company Background
[Use only provided company info - name, experience, certifications]

## Technical Approach
[Address tender requirements using company capabilities]

## Compliance
[Map company qualifications to tender requirements]

## Conclusion
[Professional closing]""",
        "good": (
            "Uses specific company certifications, actual experience details, addresses exact "
            "tender requirements"
        ),
        "bad": "Generic statements, invented experience, boilerplate content",
    },
    TaskType.PROPOSAL_IMPROVEMENT: {
        "instruction": """Improve the provided proposal by enhancing clarity and alignment with \
tender requirements. Keep the language of the current proposal. Use ONLY the provided context.

IMPROVEMENTS TO MAKE:
1. Strengthen executive summary with better value proposition
2. Better align with tender requirements
3. Improve professional language and tone
4. Enhance technical approach section
5. Ensure compliance section is complete

OUTPUT FORMAT:
{
  "improvedContent": "[Full improved proposal text]",
  "insights": [
    {"change": "[What was changed]", "explanation": "[Why this improves the proposal]"}
  ]
}""",
        "good": (
            '{"improvedContent": "# Proposal for Road Maintenance\\n\\n## Executive Summary\\n...", '
            '"insights": [{"change": "Strengthened executive summary", "explanation": "A stronger '
            'summary gives evaluators a clear first impression"}]}'
        ),
        "bad": "Enhanced content that better highlights company strengths while staying factual",
    },
    TaskType.CHAT_ASSISTANCE: {
        "instruction": """Answer the user's question about this tender or their proposal. Use only \
the provided context. Offer concrete, actionable suggestions and keep answers under 150 words.""",
        "good": (
            "The tender requires CIDB G4 and ISO 9001. Your profile lists CIDB G5 but no ISO 9001, "
            "so address quality management explicitly in the Compliance section."
        ),
        "bad": "You should probably be fine. Good luck with your proposal!",
    },
}

TASK_SETTINGS: Dict[TaskType, Dict[str, float]] = {
    TaskType.SUMMARIZE: {"max_tokens": 300, "temperature": 0.2},
    TaskType.ELIGIBILITY_CHECK: {"max_tokens": 800, "temperature": 0.1},
    TaskType.PROPOSAL_GENERATION: {"max_tokens": 2000, "temperature": 0.4},
    TaskType.PROPOSAL_IMPROVEMENT: {"max_tokens": 3000, "temperature": 0.3},
    TaskType.CHAT_ASSISTANCE: {"max_tokens": 500, "temperature": 0.3},
}


def _join(values: List[str], default: str) -> str:
    return ", ".join(values) if values else default


def build_prompt(request: TransformRequest) -> Tuple[str, List[Dict[str, str]]]:
    """Construct the system prompt and message list for a task.

    Args:
        request: Transform request with tender/company context

    Returns:
        Tuple of (system_prompt, messages)
    """
    task_config = AI_TASKS.get(request.task_type)
    if not task_config:
        raise ValueError(f"Unknown task: {request.task_type}")

    tender = request.tender
    company = request.company

    sections = [
        f"TASK TYPE: {request.task_type.value}",
        f"TASK: {task_config['instruction']}",
    ]
    if request.user_instruction and request.task_type != TaskType.CHAT_ASSISTANCE:
        sections.append(f"ADDITIONAL INSTRUCTIONS: {request.user_instruction}")

    sections.append(
        "TENDER CONTEXT:\n"
        f"Title: {tender.title or 'Not provided'}\n"
        f"Description: {tender.description or 'Not provided'}\n"
        f"Agency: {tender.agency or 'Not provided'}\n"
        f"Category: {tender.category or 'Not provided'}\n"
        f"Budget: {tender.budget or 'Not specified'}\n"
        f"Closing Date: {tender.closing_date or 'Not specified'}\n"
        f"Requirements: {_join(tender.requirements, 'See description')}"
    )
    sections.append(
        "COMPANY PROFILE:\n"
        f"Name: {company.name or 'Not provided'}\n"
        f"Registration: {company.registration_number or 'Not provided'}\n"
        f"Certifications: {_join(company.certifications, 'None listed')}\n"
        f"Experience: {company.experience or 'Not provided'}\n"
        f"Contact: {company.contact_email or 'Not provided'}"
    )
    if request.current_content:
        sections.append(f"CURRENT PROPOSAL CONTENT:\n{request.current_content}")

    sections.append(
        "EXAMPLES:\n"
        f"Good Response: {task_config['good']}\n"
        f"Bad Response (AVOID): {task_config['bad']}"
    )
    if request.task_type == TaskType.CHAT_ASSISTANCE and request.user_instruction:
        sections.append(f"USER QUESTION: {request.user_instruction}")
    sections.append("Provide your response following the exact output format specified above.")

    messages = [{"role": m.role, "content": m.content} for m in request.history]
    messages.append({"role": "user", "content": "\n\n".join(sections)})
    return TENDERLY_SYSTEM_PROMPT, messages


def build_translation_prompt(
    text: str, source_language: str, target_language: str
) -> Tuple[str, List[Dict[str, str]]]:
    """Construct the prompt for an LLM-backed translation."""
    source_name = LANGUAGE_NAMES.get(source_language, source_language)
    target_name = LANGUAGE_NAMES.get(target_language, target_language)
    content = (
        "TASK TYPE: TRANSLATION\n"
        f"SOURCE LANGUAGE: {source_language}\n"
        f"TARGET LANGUAGE: {target_language}\n\n"
        f"Translate the following text from {source_name} to {target_name}.\n\n"
        f"TEXT:\n{text}"
    )
    return TRANSLATION_SYSTEM_PROMPT, [{"role": "user", "content": content}]


def prompt_size(system_prompt: str, messages: List[Dict[str, str]]) -> int:
    """Total characters sent to the model."""
    return len(system_prompt) + sum(len(m.get("content", "")) for m in messages)
