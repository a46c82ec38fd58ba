"""Prompt templates sent to upstream models."""

CONVERSATION_CONTEXT_PROMPT = (
    "This is the context of user and ai assistant conversation. {transcript} "
    "The first {current_count} inline data elements are new attachments from the most "
    "recent message, the other {context_count} are previous attachments. When the user "
    "references attachments in the prompt of the most recent message, they are likely "
    "referring to the new set of attachments. Continue the conversation by answering the "
    "most recent message."
)

IMAGE_MODEL_SUFFIX = (
    " (You are an image model so make sure you output images if user asks and cross "
    "context from previous prompts unless the user specifically says so)"
)

UNREADABLE_MEDIA_NOTE = (
    "[Note: User has {current_count} new attachments and {context_count} previous "
    "attachments in this conversation, but this model cannot process them directly.]"
)

GOOGLE_TITLE_PROMPT = (
    'Using this initial user message "{content}" output a singular title for this '
    "User to AI chat instance, ONLY RESPOND WITH TITLE"
)

CHAT_TITLE_PROMPT = (
    'Create a short, descriptive title for a conversation that starts with: "{content}". '
    "Respond with only the title, no quotes or extra text."
)

GENERATED_IMAGE_CAPTION = "Here is the generated image."
