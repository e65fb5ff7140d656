from django.urls import path
from . import views

urlpatterns = [
    path('auth/register/', views.register, name='register'),
    path('auth/login/', views.login, name='login'),
    path('auth/logout/', views.logout, name='logout'),
    path('auth/token/refresh/', views.token_refresh, name='token_refresh'),
    path('users/me/', views.user_profile, name='user_profile'),
    path('files/', views.files, name='files'),
    path('files/register/', views.register_file, name='file_register'),
    path('files/upload-url/', views.upload_url, name='file_upload_url'),
    path('files/blob/upload/<str:token>/', views.blob_upload, name='blob_upload'),
    path('files/blob/<str:token>/', views.blob_download, name='blob_download'),
    path('photos/', views.photos, name='photos'),
    path('share/', views.share, name='share'),
]
