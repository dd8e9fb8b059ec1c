# api/responses.py — success envelope shared by function views and ViewSets
from rest_framework import status as http_status
from rest_framework.response import Response


def success_response(data=None, message=None, status=http_status.HTTP_200_OK, **extra):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    body.update(extra)
    return Response(body, status=status)


class EnvelopeMixin:
    """
    Wraps the stock ModelViewSet actions in {success, data, message}.
    Paginated lists are already wrapped by EnvelopePagination.
    """

    envelope_messages: dict = {}

    def _message(self, action):
        return self.envelope_messages.get(action)

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        if isinstance(response.data, dict) and "success" in response.data:
            return response
        return success_response(response.data)

    def retrieve(self, request, *args, **kwargs):
        response = super().retrieve(request, *args, **kwargs)
        return success_response(response.data)

    def create(self, request, *args, **kwargs):
        response = super().create(request, *args, **kwargs)
        return success_response(response.data, self._message("create"), status=http_status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        response = super().update(request, *args, **kwargs)
        return success_response(response.data, self._message("update"))

    def destroy(self, request, *args, **kwargs):
        super().destroy(request, *args, **kwargs)
        return success_response(message=self._message("destroy"))
