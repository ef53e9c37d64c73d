"""LLM 提示词模板"""

LABEL_SYSTEM_PROMPT = (
    "You name clusters of near-duplicate short texts, such as reworded social media posts. "
    "Reply with a single short label of at most eight words that captures what the texts "
    "have in common. Do not add quotes, numbering or explanations."
)

LABEL_USER_PROMPT = "Texts in this cluster:\n{texts}\n\nLabel:"

# 返回标签的最大长度，超出部分截断
LABEL_MAX_LENGTH = 80
