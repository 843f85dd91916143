"""
Services module: the collaborators a call reaches outside the audio path.

Key components:
- tool_dispatcher: routes the model's tool calls (getFAQ, getSlots, bookSlot,
  sendSMS) and guarantees one correlated result per call.
- notifier: SMS through Twilio's REST API.
- twiml: TwiML responses for the voice and DTMF webhooks.
"""
