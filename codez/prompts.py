"""
Prompt templates used when talking to the agent CLI and the commit-message model.
"""

CONVENTIONAL_COMMIT_TYPES = (
    "feat",
    "fix",
    "docs",
    "style",
    "refactor",
    "perf",
    "test",
    "chore",
    "revert",
)

CONVENTIONAL_COMMITS_SYSTEM_PROMPT = "\n".join([
    "You are an AI assistant that generates concise Git commit messages following the Conventional Commits specification.",
    "Analyze the file changes and the user's request, then output exactly one single-line commit header in the format:",
    "",
    "<type>(<scope>): <subject>",
    "",
    f"- type must be one of: {', '.join(CONVENTIONAL_COMMIT_TYPES)}.",
    "- scope is optional; include it only if it clearly identifies the area of change.",
    "- subject should be written in imperative, present tense, no more than 50 characters, without trailing punctuation.",
    "- Do not include emojis, issue numbers, or any additional details.",
    "- Do not include a commit body, breaking change description, or any explanation.",
    "",
    "Provide only the single-line commit header as the complete output.",
])

TITLE_LABEL = "[Title]"
HISTORY_LABEL = "[History]"
CONTEXT_LABEL = "[Context]"
CHANGED_FILES_LABEL = "[Changed Files]"
PROMPT_SEPARATOR = "---"

CREATE_ISSUES_INSTRUCTION = (
    'Please output only a JSON array of feature objects, each with a "title" '
    '(concise summary) and "description" (detailed explanation or examples). '
)

FIX_BUILD_TEMPLATE = (
    "Latest failed build logs:\n\n{logs}\n\n"
    "Please suggest changes to fix the build errors above."
)

FETCHED_URLS_TEMPLATE = "Contents from URLs:\n\n{contents}\n\n{prompt}"
