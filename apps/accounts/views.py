from rest_framework import status, serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from .models import User
from .serializers import UserProfileSerializer
from .services import get_active_user


class ErrorResponseSerializer(serializers.Serializer):
    error = serializers.CharField()


@extend_schema(
    responses={
        200: UserProfileSerializer,
        400: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
    },
    description="Get a user's public profile.",
    tags=['users'],
)
@api_view(['GET'])
@permission_classes([AllowAny])
def user_profile(request, user_id):
    """Get public profile by user ID."""
    try:
        user = get_active_user(user_id)
    except ValueError:
        return Response({'error': 'Invalid user ID'}, status=status.HTTP_400_BAD_REQUEST)
    except User.DoesNotExist:
        return Response({'error': 'User not found'}, status=status.HTTP_404_NOT_FOUND)

    return Response({'user': UserProfileSerializer(user).data})
