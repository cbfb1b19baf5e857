"""
Prompts for the content classifier
"""
from dataclasses import dataclass, field


SYSTEM_PROMPT = """You are an assistant that triages a college student's incoming items
(Canvas coursework, emails, calendar events, Slack messages) into a short,
actionable task list.

You are strict. A false positive clutters the student's dashboard; a missed
item can be recovered from the source. When an item is ambiguous, purely
informational, social, or automated noise, it is NOT important.

You always answer with a single JSON object and nothing else."""


CLASSIFY_PROMPT = """Today's date is {today}.

{instruction}

ITEM CONTEXT:
{context}

CONTENT:
{excerpt}

If the item is important, rewrite it into a clear task title (max 80 characters)
and a one or two sentence description of what needs to be done, and extract the
deadline if one is stated or clearly implied.
{category_hint}
Respond with ONLY a JSON object (no markdown):
{{
  "isImportant": true or false,
  "title": "Clear task title" or null,
  "description": "What needs to be done" or null,
  "dueDate": "YYYY-MM-DD" or "YYYY-MM-DDTHH:MM" or null,
  "category": one of the allowed categories or null
}}"""


PRIORITY_PROMPT = """Analyze this task and provide a priority score (0-10) and urgency score (1-10):

Task: {title}
{description_line}
{course_line}
{due_line}
Source: {source}

Consider:
- Deadline proximity (high weight)
- Academic importance (medium weight)
- Task type (assignment > meeting > reading)

Respond in this exact format:
Priority: [0-10]
Urgency: [1-10]
Reasoning: [brief explanation]"""


@dataclass(frozen=True)
class ClassificationTemplate:
    """Provider- and item-specific instruction for the classifier."""

    name: str
    instruction: str
    # What the keyword fallback answers when no exclusion keyword matches
    fallback_important: bool
    categories: tuple[str, ...] = field(default_factory=tuple)


CANVAS_GRADED_WORK = ClassificationTemplate(
    name="canvas_graded_work",
    instruction="""Decide whether this Canvas item is graded coursework the student must complete.

Mark isImportant=TRUE only if it is graded (has points or counts toward the grade)
AND has a deadline.

Mark isImportant=FALSE for:
- Ungraded practice, optional readings, surveys without credit
- Roll-call or attendance placeholders
- Items whose deadline has clearly been cancelled""",
    fallback_important=True,
)

CANVAS_ANNOUNCEMENT = ClassificationTemplate(
    name="canvas_announcement",
    instruction="""Decide whether this Canvas course announcement requires the student to act.

Mark isImportant=TRUE only for:
- Exam or quiz announcements
- Deadline changes or extensions
- Required actions (sign up, submit, bring materials)

Mark isImportant=FALSE for:
- Welcome messages, general FYI, office-hour reminders without change
- Attendance notes, social events, congratulations""",
    fallback_important=True,
)

GMAIL_MESSAGE = ClassificationTemplate(
    name="gmail_message",
    instruction="""Decide whether this email requires the student to DO SOMETHING.

Mark isImportant=TRUE only for:
- Assignments, exams, submissions or forms with a deadline
- Meeting, interview or appointment invitations with a date
- Explicit action-required requests from instructors, advisors or employers

Mark isImportant=FALSE for:
- Newsletters, promotions, receipts, account statements
- Automated build/deployment notifications
- Social invitations, birthdays, shareholder meetings
- FYI messages with no action""",
    fallback_important=False,
    categories=("assignment", "quiz", "meeting", "email"),
)

CALENDAR_EVENT = ClassificationTemplate(
    name="calendar_event",
    instruction="""Decide whether this calendar event requires the student's attendance or preparation.

Mark isImportant=TRUE only for:
- Classes, exams, labs, office hours the student booked
- Interviews, advising or project meetings
- Deadlines placed on the calendar

Mark isImportant=FALSE for:
- Personal or social events, holidays, reminders to relax
- Recurring placeholders with no preparation
- Events the student is merely informed about""",
    fallback_important=True,
)

SLACK_MESSAGE = ClassificationTemplate(
    name="slack_message",
    instruction="""Decide whether this Slack message is an ACTIONABLE TASK.

CRITICAL: Only mark isImportant=true if this requires someone to DO SOMETHING with a deadline.

Mark isImportant=FALSE for:
- Casual conversations, chit-chat
- Social messages, memes, jokes
- FYI updates with no action needed
- General announcements without deadlines
- "Thanks", "Got it", acknowledgments
- Questions without deadlines

Mark isImportant=TRUE only for:
- Task assignments with deadlines (e.g., "Can you finish X by Friday?")
- Project deadlines mentioned
- Meeting reminders with specific times to attend
- Code review requests with due dates
- Action items from meetings""",
    fallback_important=False,
)
