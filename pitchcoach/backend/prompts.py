"""
Coaching prompt templates.

This module contains the prompts the reference backend sends to the model,
keeping them separate from the request handling for easier editing.
"""

from typing import Dict, List, Optional


class CoachPrompts:
    """Collection of all coaching-related prompts."""

    @staticmethod
    def client_simulator(scenario_title: str,
                         scenario_description: str,
                         seller_context: Optional[str] = None) -> str:
        """System instruction for role-playing the prospect."""
        context_block = ""
        if seller_context:
            context_block = f"""
What the salesperson told us about their offer and the meeting:
{seller_context}
"""
        return f"""
You are a client simulator for a salesperson rehearsing a pitch. Play the client described below.
Scenario: {scenario_title}
Client description: {scenario_description}
{context_block}
The salesperson is trying to sell you a product or service. If they have not said what it is, stay general.
Interact naturally: ask questions, raise objections or show interest, consistent with your role.
Keep every reply short (1-2 sentences).
Do not end the conversation too quickly, aim for at least 3-5 exchanges.
Never say that you are an AI or a simulator.
        """.strip()

    @staticmethod
    def first_turn(user_transcript: str) -> str:
        """User turn for the opening line, when there is no history yet."""
        return f'The salesperson opens the conversation and says: "{user_transcript}"\nAnswer as the client.'

    @staticmethod
    def pitch_analysis(conversation: List[Dict[str, str]]) -> str:
        """Prompt for scoring a finished rehearsal."""
        lines = [
            f"{'Salesperson' if entry.get('sender') == 'user' else 'Client'}: {entry.get('text', '')}"
            for entry in conversation
        ]
        return f"""
You are an experienced sales coach. Review the rehearsal below between a salesperson and a simulated client.

Transcript:
{chr(10).join(lines)}

Assess discovery questions, objection handling, clarity of the value proposition and closing.

Respond ONLY with minified JSON (no code fences) of this shape:
{{"score":<integer 0..100>,"advice":["<short strength or tip>", ...],"improvements":["<concrete thing to do better>", ...]}}
Give 2-5 items in each list.
        """.strip()

    @staticmethod
    def history_contents(conversation_history: List[Dict[str, str]]) -> List[Dict[str, str]]:
        """Map wire history entries to model roles (salesperson is 'user', client is 'model')."""
        return [
            {"role": "user" if entry["sender"] == "user" else "model", "text": entry["text"]}
            for entry in conversation_history
        ]
