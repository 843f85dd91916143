"""
Bot module: the per-call protocol bridge.

Key components:
- call_leg: TwilioCallLeg, the caller's Media Streams WebSocket.
- realtime_api: RealtimeModelLeg, session negotiation and the OpenAI Realtime
  event stream.
- coordinator: SessionCoordinator, the per-call state machine relaying audio
  and correlating tool calls between the two legs.
- session_config: the negotiation payload (audio formats, voice, VAD,
  instructions, tool schemas).

Usage examples:
```python
from receptionist.bot.call_leg import TwilioCallLeg
from receptionist.bot.coordinator import SessionCoordinator
from receptionist.bot.realtime_api import RealtimeModelLeg

call_leg = TwilioCallLeg(websocket)
await call_leg.accept()
coordinator = SessionCoordinator(call_leg, RealtimeModelLeg(api_key, request), dispatcher)
await coordinator.run()
```
"""
