from types import MappingProxyType

# Milestone blueprint, in emission order.
# anchor: which event date the offset is applied to
#   created / registration / start / end
# needs_registration: only emitted when the event has a registration deadline
MILESTONE_TEMPLATE = (
  {"key": "registration-open", "name": "Registration Opens",
   "description": "Event registration is live and accepting participants",
   "type": "REGISTRATION_OPEN", "priority": "HIGH",
   "anchor": "created", "offset_days": 0, "depends_on": (), "needs_registration": True},
  {"key": "registration-close", "name": "Registration Closes",
   "description": "Final deadline for event registration",
   "type": "REGISTRATION_CLOSE", "priority": "CRITICAL",
   "anchor": "registration", "offset_days": 0, "depends_on": ("registration-open",), "needs_registration": True},
  {"key": "marketing-launch", "name": "Marketing Campaign Launch",
   "description": "Begin promotional activities and outreach",
   "type": "MARKETING_LAUNCH", "priority": "HIGH",
   "anchor": "start", "offset_days": -30, "depends_on": (), "needs_registration": False},
  {"key": "venue-booking", "name": "Venue Confirmation",
   "description": "Finalize venue arrangements and logistics",
   "type": "VENUE_BOOKING", "priority": "CRITICAL",
   "anchor": "start", "offset_days": -14, "depends_on": (), "needs_registration": False},
  {"key": "final-preparations", "name": "Final Preparations",
   "description": "Complete all remaining setup and preparation tasks",
   "type": "FINAL_PREPARATIONS", "priority": "CRITICAL",
   "anchor": "start", "offset_days": -3, "depends_on": ("venue-booking", "registration-close"),
   "needs_registration": False},
  {"key": "event-start", "name": "Event Begins",
   "description": "Event officially starts",
   "type": "EVENT_START", "priority": "CRITICAL",
   "anchor": "start", "offset_days": 0, "depends_on": ("final-preparations",), "needs_registration": False},
  {"key": "event-end", "name": "Event Concludes",
   "description": "Event officially ends",
   "type": "EVENT_END", "priority": "CRITICAL",
   "anchor": "end", "offset_days": 0, "depends_on": ("event-start",), "needs_registration": False},
  {"key": "post-event-cleanup", "name": "Post-Event Activities",
   "description": "Complete follow-up activities and cleanup",
   "type": "POST_EVENT_CLEANUP", "priority": "MEDIUM",
   "anchor": "end", "offset_days": 7, "depends_on": ("event-end",), "needs_registration": False},
)

# task category -> milestone types a task may be aligned to (narrow)
MATCH_TABLE = MappingProxyType({
  "SETUP": ("VENUE_BOOKING", "FINAL_PREPARATIONS"),
  "MARKETING": ("MARKETING_LAUNCH", "REGISTRATION_OPEN"),
  "LOGISTICS": ("VENUE_BOOKING", "FINAL_PREPARATIONS"),
  "TECHNICAL": ("FINAL_PREPARATIONS", "EVENT_START"),
  "REGISTRATION": ("REGISTRATION_OPEN", "REGISTRATION_CLOSE"),
  "POST_EVENT": ("POST_EVENT_CLEANUP",),
})

# milestone type -> task categories counted towards its progress (broad)
RELATED_TASK_TABLE = MappingProxyType({
  "REGISTRATION_OPEN": ("REGISTRATION", "MARKETING"),
  "REGISTRATION_CLOSE": ("REGISTRATION",),
  "VENUE_BOOKING": ("LOGISTICS", "SETUP"),
  "MARKETING_LAUNCH": ("MARKETING",),
  "FINAL_PREPARATIONS": ("SETUP", "LOGISTICS", "TECHNICAL"),
  "EVENT_START": ("LOGISTICS",),
  "EVENT_END": ("LOGISTICS",),
  "POST_EVENT_CLEANUP": ("POST_EVENT",),
})

# milestone type -> category of the auto-created milestone task
MILESTONE_TASK_CATEGORY = MappingProxyType({
  "REGISTRATION_OPEN": "REGISTRATION",
  "REGISTRATION_CLOSE": "REGISTRATION",
  "VENUE_BOOKING": "LOGISTICS",
  "MARKETING_LAUNCH": "MARKETING",
  "FINAL_PREPARATIONS": "SETUP",
  "EVENT_START": "LOGISTICS",
  "EVENT_END": "LOGISTICS",
  "POST_EVENT_CLEANUP": "POST_EVENT",
})

OVERDUE_MITIGATION = (
  "Reassign overdue tasks to available team members",
  "Extend deadlines for non-critical tasks",
  "Break down large overdue tasks into smaller chunks",
  "Implement daily progress check-ins",
)

BLOCKED_MITIGATION = (
  "Identify and resolve blocking issues immediately",
  "Find alternative approaches for blocked tasks",
  "Escalate to senior management if needed",
  "Prepare contingency plans",
)

DEFAULT_ROLE_PERMISSIONS = MappingProxyType({
  "WORKSPACE_OWNER": ("MANAGE_WORKSPACE", "MANAGE_TEAM", "MANAGE_TASKS", "VIEW_ANALYTICS"),
  "TEAM_LEAD": ("MANAGE_TASKS", "VIEW_ANALYTICS"),
  "EVENT_COORDINATOR": ("MANAGE_TASKS", "VIEW_ANALYTICS"),
  "VOLUNTEER_MANAGER": ("MANAGE_TASKS",),
  "TECHNICAL_SPECIALIST": ("MANAGE_TASKS",),
  "MARKETING_LEAD": ("MANAGE_TASKS",),
  "GENERAL_VOLUNTEER": ("VIEW_TASKS",),
})
