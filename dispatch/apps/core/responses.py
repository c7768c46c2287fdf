from rest_framework.response import Response


def error_response(error):
    """Render a DispatchError for the originating actor."""
    return Response(error.as_dict(), status=error.status_code)
