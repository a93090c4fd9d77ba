"""
Assistant prompts rendered by the conversation engine.

All functions are pure and return markdown text.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from app.agent.extractor import normalize_cadence
from app.models.requirements import (
    DataQualityAssessment,
    REQUIRED_FIELDS,
    RequirementsRecord,
    ValidationOutcome,
    display_name,
)
from app.models.provisioning import ProvisioningResult

FIELD_EXAMPLES = {
    "user_email": "john.doe@company.com",
    "report_frequency": "Weekly",
    "project_name": "Good Chop Competitive Analysis",
    "product_name": "Good Chop",
    "product_url": "https://goodchop.com",
    "industry": "Food delivery",
    "positioning": "Premium meat delivery for health-conscious home cooks",
    "customer_data": "Busy professionals aged 25-45 who value quality protein",
    "user_problem": "Finding high-quality, ethically sourced meat is time consuming",
}

FIELD_DESCRIPTIONS = {
    "user_email": "where reports are delivered",
    "report_frequency": "Daily, Weekly, Biweekly, Monthly, Quarterly or Annually",
    "project_name": "a name for this analysis project",
    "product_name": "the product you want analyzed",
    "product_url": "your product's public website",
    "industry": "the market you compete in",
    "positioning": "how your product stands out",
    "customer_data": "who your customers are",
    "user_problem": "the problems your product solves",
}

LEGACY_QUESTIONS = {
    "product_name": "What is the name of the product that you want to perform competitive analysis on?",
    "product_url": "What is the URL of the product website?",
    "industry": "Which industry does the product operate in?",
    "positioning": "How would you describe the product's positioning in one or two sentences?",
    "user_email": "What email address should the reports be sent to?",
    "report_frequency": "How often would you like to receive reports? (Daily, Weekly, Biweekly, Monthly, Quarterly or Annually)",
    "project_name": "What would you like to call the project?",
    "customer_data": "Who are your target customers?",
    "user_problem": "What problems does your product solve for these customers?",
}

MAX_LISTED_MISSING = 5


def example_for(field: str) -> str:
    return FIELD_EXAMPLES.get(field, "")


def format_example_list() -> str:
    lines = [f"{i}. {FIELD_EXAMPLES[field]}" for i, field in enumerate(REQUIRED_FIELDS, start=1)]
    return "\n".join(lines)


def field_guide() -> str:
    lines = [
        f"{i}. **{display_name(field)}** - {FIELD_DESCRIPTIONS[field]}"
        for i, field in enumerate(REQUIRED_FIELDS, start=1)
    ]
    return "\n".join(lines)


def welcome_prompt() -> str:
    return (
        "Welcome to the Competitor Research Agent. I'll set up a competitive analysis project for you.\n\n"
        "Please share the following in one message, as a numbered list or in your own words:\n\n"
        f"{field_guide()}\n\n"
        "You can also add competitors you want tracked or areas to focus on."
    )


def legacy_welcome_prompt() -> str:
    return (
        "Welcome to the Competitor Research Agent. To get started, please answer three questions, "
        "one per line:\n\n"
        "1. What is your email address?\n"
        "2. How often would you like to receive reports? (Daily, Weekly, Monthly...)\n"
        "3. How would you like to call the report?"
    )


def welcome_back_prompt() -> str:
    return "**Welcome back!** Let's pick up with a fresh project.\n\n" + welcome_prompt()


def simplified_prompt() -> str:
    return (
        "**Service Initialization Issue**\n\n"
        "I'm experiencing some delays right now. Let me try a simplified approach.\n\n"
        "What would you like to name your analysis project? Your previous answers are kept."
    )


def _summarize_collected(record: RequirementsRecord) -> List[str]:
    return [f"- {display_name(f)}: {record.value_of(f)}" for f in REQUIRED_FIELDS if record.value_of(f)]


def progressive_prompt(record: RequirementsRecord, outcome: ValidationOutcome) -> str:
    """Partial-collection reply: what is known, what to fix, what is still missing."""
    parts = [f"**Thanks! Making progress** ({outcome.completeness}% complete)"]

    collected = _summarize_collected(record)
    if collected:
        parts.append("**What I have so far:**\n" + "\n".join(collected))

    invalid = [e for e in outcome.errors if e.type != "required"]
    if invalid:
        lines = []
        for i, issue in enumerate(invalid, start=1):
            line = f"{i}. **{display_name(issue.field)}**: {issue.message}"
            if issue.suggestion:
                line += f"\n   {issue.suggestion} (e.g., \"{example_for(issue.field)}\")"
            lines.append(line)
        parts.append("**Please fix these issues:**\n" + "\n".join(lines))

    missing = outcome.missing_fields
    if missing:
        lines = [
            f"{i}. **{display_name(f)}** - {FIELD_DESCRIPTIONS.get(f, '')}\n   Example: \"{example_for(f)}\""
            for i, f in enumerate(missing[:MAX_LISTED_MISSING], start=1)
        ]
        remaining = len(missing) - MAX_LISTED_MISSING
        if remaining > 0:
            lines.append(f"...and {remaining} more field{'s' if remaining > 1 else ''}")
        parts.append("**Still need:**\n" + "\n".join(lines))

    if outcome.suggestions:
        parts.append("**Tips:**\n" + "\n".join(f"- {s}" for s in outcome.suggestions))

    parts.append(
        "You can answer in any format (numbered list, bullet points or plain sentences). "
        "I'll keep what you've already provided and combine it with your new input."
    )
    return "\n\n".join(parts)


def _indent(text: str) -> str:
    return "\n  ".join(text.splitlines())


def confirmation_summary(
    record: RequirementsRecord,
    outcome: ValidationOutcome,
    quality: DataQualityAssessment,
) -> str:
    cadence = normalize_cadence(record.report_frequency) or record.value_of("report_frequency")
    parts = [
        "**Ready to create your competitive analysis project!**\n\n"
        "Please review the information below.",
        "**Contact & project setup**\n"
        f"- Email Address: {record.value_of('user_email')}\n"
        f"- Report Frequency: {cadence}\n"
        f"- Project Name: \"{record.value_of('project_name')}\"",
        "**Product information**\n"
        f"- Product Name: {record.value_of('product_name')}\n"
        f"- Product URL: {record.value_of('product_url')}\n"
        f"- Industry: {record.value_of('industry')}",
        "**Business context**\n"
        f"- Product Positioning:\n  {_indent(record.value_of('positioning'))}\n"
        f"- Target Customers:\n  {_indent(record.value_of('customer_data'))}\n"
        f"- User Problems Solved:\n  {_indent(record.value_of('user_problem'))}",
    ]

    optional = []
    if record.competitor_hints:
        optional.append(f"- Competitor Focus: {', '.join(record.competitor_hints)}")
    if record.focus_areas:
        optional.append(f"- Analysis Focus Areas: {', '.join(record.focus_areas)}")
    if record.report_template:
        optional.append(f"- Report Template: {record.report_template}")
    if optional:
        parts.append("**Optional enhancements**\n" + "\n".join(optional))

    if outcome.warnings:
        lines = []
        for i, warning in enumerate(outcome.warnings, start=1):
            line = f"{i}. **{display_name(warning.field)}**: {warning.message}"
            if warning.suggestion:
                line += f"\n   {warning.suggestion}"
            lines.append(line)
        parts.append("**Recommendations to enhance your analysis:**\n" + "\n".join(lines))

    parts.append(
        "**Data quality**\n"
        f"- Completeness: {quality.completeness}% ({quality.completeness_label})\n"
        f"- Detail level: {quality.detail_level} - {quality.detail_description}\n"
        f"- Analysis potential: {quality.analysis_potential}"
    )
    parts.append(
        "**What happens next**\n"
        "- All available competitors are assigned to the project automatically\n"
        f"- An initial report is generated right away, then {cadence.lower()} reports are scheduled\n"
        f"- Reports are delivered to {record.value_of('user_email')}"
    )
    parts.append("Type **yes** to create the project, **edit** to change something, or **cancel** to start over.")
    return "\n\n".join(parts)


def confirmation_reprompt() -> str:
    return "Please reply **yes** to create the project, **edit** to change the information, or **cancel** to discard it."


def collected_summary(record: RequirementsRecord) -> str:
    collected = _summarize_collected(record) or ["- Nothing yet"]
    return "**Current information:**\n" + "\n".join(collected)


def edit_prompt(record: RequirementsRecord) -> str:
    return (
        "No problem. Tell me what to change, for example \"Industry: Healthcare\". "
        "Everything else stays as it is.\n\n" + collected_summary(record)
    )


def cancelled_prompt() -> str:
    return "Project creation cancelled and the collected information was discarded.\n\n" + welcome_prompt()


def validation_issue_prompt(outcome: ValidationOutcome) -> str:
    parts = ["**Almost ready! Found some issues to fix:**"]
    lines = []
    for i, issue in enumerate(outcome.errors, start=1):
        line = f"{i}. **{display_name(issue.field)}**: {issue.message}"
        if issue.suggestion:
            line += f"\n   {issue.suggestion}"
        lines.append(line)
    parts.append("\n".join(lines))
    parts.append("Please send the corrected information. I'll merge your corrections with your existing data.")
    return "\n\n".join(parts)


def guided_prompt() -> str:
    return (
        "**Let me help you get started!**\n\n"
        "I couldn't find project details in that message. Here is an example you can copy and adapt:\n\n"
        f"```\n{format_example_list()}\n```\n\n"
        "Please try again with your information."
    )


def complete_failure_prompt(reference: str) -> str:
    return (
        "**Let's start fresh with a guided approach.**\n\n"
        "Something went wrong while reading your message, but nothing you shared before was lost. "
        "Please send your email address and how often you want reports, for example:\n\n"
        "```\njohn.doe@company.com\nWeekly\n```\n\n"
        f"Reference: {reference}"
    )


def provisioning_success(result: ProvisioningResult, record: RequirementsRecord) -> str:
    parts = [
        "**Project created successfully!**",
        f"- Project: \"{result.project_name}\" (ID: {result.project_id})\n"
        f"- Competitors assigned: {result.competitor_count}\n"
        f"- Reports delivered to: {record.value_of('user_email')}",
    ]
    if result.product_created:
        parts.append(f"Product \"{record.value_of('product_name')}\" was registered and its website snapshot has been requested.")
    elif result.product_error:
        parts.append("The product record could not be saved; you can add it later from the project page.")

    report = result.initial_report
    if report.generated:
        parts.append(f"Your initial report is being generated (report ID: {report.report_id}).")
    elif report.skipped:
        parts.append("No competitors are available yet, so the initial report will be generated once they are added.")
    else:
        parts.append(
            f"The initial report could not be generated after {report.attempts} attempts. "
            "Reply **retry** to try again."
        )

    schedule = result.schedule
    if schedule.scheduled and schedule.next_run_time:
        parts.append(f"Recurring reports are scheduled. Next run: {schedule.next_run_time:%Y-%m-%d %H:%M} UTC.")
    elif not schedule.skipped:
        parts.append("Recurring reports could not be scheduled yet; they can be set up from the project page.")

    if result.dependency_status and result.dependency_status != "healthy":
        parts.append("AI features are currently limited, so the first reports may contain basic analysis only.")

    parts.append(f"Correlation ID: {result.correlation_id}")
    parts.append("Say **start new project** whenever you want to set up another analysis.")
    return "\n\n".join(parts)


def provisioning_failure(message: str, correlation_id: Optional[str], support_contact: str) -> str:
    return (
        "**Project creation failed.**\n\n"
        f"{message}\n\n"
        "Nothing was saved and your information is still here. You can:\n"
        "- Reply **yes** to retry\n"
        "- Reply **edit** to change the information\n"
        "- Reply **cancel** to discard it\n\n"
        f"If the problem persists, contact {support_contact} with reference {correlation_id}."
    )


def completed_prompt() -> str:
    return (
        "Your competitive analysis project is set up and analysis is running. "
        "Say **start new project** to set up another one."
    )


def recovery_prompt(record: RequirementsRecord, project_id: Optional[str]) -> str:
    if project_id:
        return (
            "**Session Recovery**\n\n"
            f"I detected an interruption, but your project ({project_id}) is preserved.\n\n"
            f"- Product: {record.value_of('product_name') or 'Not specified'}\n"
            f"- Email: {record.value_of('user_email') or 'Not specified'}\n\n"
            "Would you like to:\n"
            "1. **Continue** with the current data\n"
            "2. **Review and update** the information\n"
            "3. **Start completely fresh**\n\n"
            "Please type 1, 2 or 3."
        )
    collected = _summarize_collected(record)
    return (
        "**Partial Data Recovery**\n\n"
        "I found some information from our previous conversation:\n"
        + "\n".join(collected)
        + "\n\nWould you like to:\n"
        "1. **Continue** from where we left off\n"
        "2. **Edit** the information\n"
        "3. **Start fresh** with a new project\n\n"
        "Please type 1, 2 or 3."
    )


def recovery_reprompt() -> str:
    return "Please type 1 to continue, 2 to review the information, or 3 to start fresh."


def migration_offer(record: RequirementsRecord) -> str:
    kept = _summarize_collected(record.with_legacy_fields_promoted())
    kept_text = "\n".join(kept) if kept else "- Nothing yet"
    return (
        "**A faster setup is available.**\n\n"
        "The new flow collects everything in one message. Everything you've told me so far is kept:\n"
        f"{kept_text}\n\n"
        "Would you like to:\n"
        "1. **Migrate now** to the new flow\n"
        "2. **Finish** with the current step-by-step flow\n"
        "3. **Tell me more** about the difference"
    )


def migration_details() -> str:
    return (
        "In the step-by-step flow I ask for one detail per message. In the new flow you send "
        "all nine details at once, in any format, and I confirm them in a single summary. "
        "Both create the same project.\n\n"
        "Type 1 to migrate now or 2 to finish the current flow."
    )


def legacy_question(field: str) -> str:
    return LEGACY_QUESTIONS[field]


def legacy_setup_ack(record: RequirementsRecord) -> str:
    return (
        f"Thanks! I noted **{record.value_of('project_name')}** with "
        f"{(record.value_of('report_frequency') or '').lower()} reports to {record.value_of('user_email')}.\n\n"
        + legacy_question("product_name")
    )


def legacy_product_confirm(record: RequirementsRecord) -> str:
    return (
        "Here is the product information:\n"
        f"- Product: {record.value_of('product_name')}\n"
        f"- Website: {record.value_of('product_url')}\n"
        f"- Industry: {record.value_of('industry')}\n"
        f"- Positioning: {record.value_of('positioning')}\n\n"
        "Is this correct? Reply **yes** to continue, or **migrate** to switch to the faster flow."
    )


def legacy_customer_question() -> str:
    return (
        "Great. Now please describe your customers: who they are, what they need "
        "and the main problems your product solves for them."
    )


def legacy_fix_prompt(outcome: ValidationOutcome, field: str) -> str:
    """Asks for one field at a time before a step-by-step project is created."""
    lines = []
    for issue in outcome.errors:
        line = f"- **{display_name(issue.field)}**: {issue.message}"
        if issue.suggestion and issue.type != "required":
            line += f" {issue.suggestion}"
        lines.append(line)
    return (
        "**Before I create the project, a few details need attention:**\n"
        + "\n".join(lines)
        + f"\n\n{legacy_question(field)} (e.g., {example_for(field)})\n\n"
        "Or reply **migrate** to finish in the faster flow."
    )


def legacy_analysis_confirm(record: RequirementsRecord) -> str:
    return (
        "Thanks, I have everything I need for the analysis:\n"
        + "\n".join(_summarize_collected(record.with_legacy_fields_promoted()))
        + "\n\nShall I create the project and start the analysis? Reply **yes** to proceed."
    )


def legacy_report_status() -> str:
    return (
        "The analysis has been started. Reply **retry** to regenerate the report, **support** for help, "
        "or **migrate** to move to the new flow. Reply **yes** when you're ready to choose a delivery option."
    )


def legacy_delivery_prompt() -> str:
    return (
        "How would you like to receive the report?\n"
        "1. **Email** it to me\n"
        "2. **Migrate** to the new flow\n"
        "3. **Schedule** recurring reports"
    )


def support_prompt(support_contact: str, correlation_id: Optional[str]) -> str:
    reference = f" with reference {correlation_id}" if correlation_id else ""
    return f"Please contact {support_contact}{reference} and our team will help you."


def bullet_list(items: Iterable[str]) -> str:
    return "\n".join(f"- {item}" for item in items)
