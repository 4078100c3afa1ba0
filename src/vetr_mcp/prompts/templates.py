"""Prompt templates for VETR risk review."""

from typing import Any

# Prompt definitions
PROMPTS = {
    "red_flag_review": {
        "description": "Review an entity's filings and leadership for red flags",
        "arguments": [{"name": "symbol", "required": True}],
    },
    "vetr_score_memo": {
        "description": "Explain an entity's composite VETR score in a short memo",
        "arguments": [{"name": "symbol", "required": True}],
    },
}


def list_prompts() -> list[dict[str, Any]]:
    """List available prompts."""
    return [
        {
            "name": name,
            "description": info["description"],
            "arguments": info["arguments"],
        }
        for name, info in PROMPTS.items()
    ]


def get_prompt(name: str, arguments: dict[str, str]) -> dict[str, Any] | None:
    """
    Get a prompt by name with arguments filled in.

    Returns dict with 'messages' key for MCP GetPromptResult.
    """
    if name not in PROMPTS:
        return None

    symbol = arguments.get("symbol", "").strip().upper()

    if name == "red_flag_review":
        return {
            "messages": [
                {
                    "role": "user",
                    "content": f"""Review {symbol} for investment red flags.

Gather the company's regulatory filings from the past two years (type, date,
summary, whether material) and its current executive roster (name, title,
years at company, specialization). Then call:

detect_red_flags("{symbol}", filings=[...], executives=[...])

Report:
1. **Severity**: The severity band and total score (0-100)
2. **Flags**: Each detected flag with its score out of its maximum, and the
   filings or executives that triggered it
3. **Context**: Whether each flag looks structural or one-off
4. **Watch list**: What new filing or leadership change would raise or clear
   each flag

If get_flag_trend is available with prior flag history, include whether red
flag activity is IMPROVING, WORSENING or STABLE.

Be factual. Quote filing summaries rather than paraphrasing them.""",
                }
            ]
        }

    if name == "vetr_score_memo":
        return {
            "messages": [
                {
                    "role": "user",
                    "content": f"""Write a VETR score memo for {symbol}.

Call get_vetr_score("{symbol}", filings=[...], executives=[...]) with the
company's recent filings and executive roster.

Then provide:
1. **Score**: Overall VETR score (0-100) and what it implies
2. **Components**: One line each for pedigree, filing velocity, red flag,
   growth and governance, naming the strongest and weakest
3. **Adjustments**: Any audited-financials bonus or overdue-filing penalty
4. **Red flags**: Severity band and the largest contributing flag
5. **Data gaps**: Any provenance warnings (e.g., market data unavailable)

Keep it under 250 words. No hedging.""",
                }
            ]
        }

    return None
