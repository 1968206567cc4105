import json

from channels.generic.websocket import AsyncWebsocketConsumer

from core.services.events import clinic_group


class ClinicFeedConsumer(AsyncWebsocketConsumer):
    """Pushes ``clinic.event`` messages of the user's clinic.

    Close codes: 4001 unauthenticated, 4003 account without a clinic.
    """

    async def connect(self):
        user = self.scope.get('user')
        if user is None or not user.is_authenticated:
            await self.close(code=4001)
            return
        clinic_id = user.clinic_id if getattr(user, 'role', '') in ('doctor', 'staff') else None
        if not clinic_id:
            await self.close(code=4003)
            return
        self.group_name = clinic_group(clinic_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send(json.dumps({'type': 'welcome', 'clinic_id': clinic_id}))

    async def disconnect(self, close_code):
        if hasattr(self, 'group_name'):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        # feed is server push only; answer pings so clients can keep alive
        if text_data and text_data.strip() in ('ping', '{"type":"ping"}', '{"type": "ping"}'):
            await self.send(json.dumps({'type': 'pong'}))

    async def clinic_event(self, event):
        await self.send(json.dumps(event))
