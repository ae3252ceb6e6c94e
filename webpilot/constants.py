"""webpilot constants."""

DEFAULT_MODEL = "gpt-4o"
DEFAULT_VISUAL_MODEL = "gpt-4o"

MAX_ITERATIONS = 20
VISUAL_MAX_STEPS = 5

# Native driver call used to drop cached accessibility-tree uids after coordinate actions.
CACHE_INVALIDATION_SCRIPT = "() => { return true; }"

TASK_FINISHED = "Task finished"
TASK_COMPLETED = "Task completed"
TASK_CANCELLED = "Browser task cancelled"

COMPLETION_REPROMPT = (
    "You must call the complete_task tool to finish. If the task is done, call "
    "complete_task with a summary. If you cannot complete the task, call "
    "complete_task explaining why."
)

NAMELESS_CALL_ERROR = "Error: function call without name was not executed."
