# academics/urls.py

from django.urls import path
from . import views

app_name = 'academics'

urlpatterns = [
    # Subjects
    path('subjects/', views.subject_collection, name='subject_collection'),
    path('subjects/<uuid:pk>/', views.subject_detail, name='subject_detail'),

    # Classes
    path('classes/', views.class_collection, name='class_collection'),
    path('classes/<uuid:pk>/', views.class_detail, name='class_detail'),

    # Enrollments
    path('enrollments/', views.enrollment_collection, name='enrollment_collection'),
    path('enrollments/<uuid:pk>/', views.enrollment_detail, name='enrollment_detail'),

    # Teacher assignments
    path('assignments/assign/', views.assign_teacher, name='assign_teacher'),
    path('assignments/update/', views.update_teacher_assignment, name='update_teacher_assignment'),
    path('assignments/remove-from-campus/', views.remove_teacher_from_campus, name='remove_teacher_from_campus'),
    path('assignments/teachers/<uuid:teacher_id>/', views.teacher_assignments, name='teacher_assignments'),
]
