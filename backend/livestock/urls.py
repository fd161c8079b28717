"""
URL patterns for the livestock REST API.
"""

from django.urls import path
from . import views

app_name = 'livestock'

urlpatterns = [
    path('status/', views.livestock_status, name='livestock_status'),

    # Registry reads
    path('livestock/', views.all_livestocks, name='all_livestocks'),
    path('livestock/<int:token_id>/', views.livestock_detail, name='livestock_detail'),
    path('livestock/farm/<str:farm_id>/', views.livestocks_by_farm, name='livestocks_by_farm'),
    path('livestock/species/<str:species>/', views.livestocks_by_species, name='livestocks_by_species'),
    path('livestock/owner/<str:address>/', views.livestocks_by_owner, name='livestocks_by_owner'),

    # Registry writes
    path('livestock/mint/', views.mint_livestock, name='mint_livestock'),
    path('livestock/<int:token_id>/metadata/', views.update_livestock_metadata, name='update_livestock_metadata'),
    path('livestock/<int:token_id>/approve/', views.approve_livestock, name='approve_livestock'),
    path('livestock/<int:token_id>/transfer/', views.transfer_livestock, name='transfer_livestock'),
    path('livestock/operators/', views.set_operator_approval, name='set_operator_approval'),
    path('roles/grant/', views.grant_role, name='grant_role'),
    path('roles/revoke/', views.revoke_role, name='revoke_role'),
    path('roles/<str:role>/', views.role_members, name='role_members'),

    # LiveStake
    path('stake/<int:token_id>/', views.stake_detail, name='stake_detail'),
    path('stake/<int:token_id>/stake/', views.stake_livestock, name='stake_livestock'),
    path('stake/<int:token_id>/unstake/', views.unstake_livestock, name='unstake_livestock'),
    path('stake/staker/<str:address>/', views.staked_tokens, name='staked_tokens'),
]
