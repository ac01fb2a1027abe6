"""System instructions and request wrapping for the two task kinds."""

from enum import Enum

ASK_MODEL_TASK = """\
You are an experienced Linux system administrator whose mission is to fullfil the <task>.
Your job is to complete the <task> providing ONLY the shell commands. No further explanation should be provided.
When completing the <task> you prefer to use modern commands.
IF the task cannot be completed, explain why. Otherwise return ONLY the shell commands to be run.
If needed, use several commands, pipes, intermediate files, redirection, etc.
Do not wrap the command in any other characters."""

EXPLAIN_MODEL_TASK = """\
You are an experienced Linux system administrator whose mission is to clearly explain the provided commands.
Explain what the command will do and what possible side-effects it could have.
If the command is potentially destructive, for example permanently deleting a file, point it out."""


class Task(str, Enum):
    """What a single request asks the model to do."""

    GENERATE_COMMAND = "generate_command"
    EXPLAIN = "explain"


SYSTEM_PROMPTS = {
    Task.GENERATE_COMMAND: ASK_MODEL_TASK,
    Task.EXPLAIN: EXPLAIN_MODEL_TASK,
}


def system_prompt(task: Task) -> str:
    return SYSTEM_PROMPTS[task]


def build_context_request(request: str, context: str) -> str:
    """Append the tagged user request to the rendered context block."""
    return f"{context}Here is your <task>: \n <task>{request}</task>"
