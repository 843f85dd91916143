"""
Receptionist Bridge - Twilio Media Streams to OpenAI Realtime API

A dental practice's phone line answered by a realtime voice model. Each call's
audio is relayed between Twilio and OpenAI, and the model can look up FAQ
answers, list and book appointment slots, and send SMS confirmations while it
talks to the caller.

Key Components:
- bot: the call leg, the model leg and the per-call coordinator that bridges them
- config: constants, logging, environment settings and the fixed prompts
- models: wire schemas for both protocols, internal events, session state and
  reference data
- services: tool dispatcher, SMS notifier and TwiML builders

Getting Started:
1. Set environment variables (or a .env file):
   - OPENAI_API_KEY: OpenAI API key
   - TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN / TWILIO_NUMBER: SMS confirmations
   - FRONT_DESK_NUMBER: human fallback
   - PUBLIC_HOST: host Twilio should open the media stream against

2. Start the server:
   ```bash
   python run.py
   ```

3. Point the Twilio number's voice webhook at https://your-host/voice
"""
