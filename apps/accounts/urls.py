# accounts/urls.py

from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    path('login/', views.login_view, name='login'),
    path('logout/', views.logout_view, name='logout'),
    path('csrf/', views.csrf_view, name='csrf'),
    path('me/', views.me_view, name='me'),
    path('users/', views.create_user_view, name='create_user'),
]
