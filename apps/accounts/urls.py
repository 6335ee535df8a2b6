from django.urls import path
from . import views

app_name = 'users'

urlpatterns = [
    path('<str:user_id>/profile/', views.user_profile, name='user-profile'),
]
