# SPDX-License-Identifier: AGPL-3.0-or-later
"""
URL configuration for the assembly engine.

Mounted under /condo/ by the project urls:
- public/...                  participant endpoints (token-authenticated)
- <tenant_slug>/assemblies/   syndic endpoints (session + membership)
"""

from django.urls import path

from .api import views

app_name = "assemblies"

assembly = "<slug:tenant_slug>/assemblies/<uuid:assembly_id>"
item = f"{assembly}/agenda/<uuid:item_id>"
participant = f"{assembly}/participants/<uuid:participant_id>"

urlpatterns = [
    # Participant API (must precede the tenant routes)
    path("public/checkin/<str:token>/", views.CheckinView.as_view(), name="public-checkin"),
    path("public/session/", views.SessionInfoView.as_view(), name="public-session"),
    path("public/session/agenda/", views.SessionAgendaView.as_view(), name="public-session-agenda"),
    path(
        "public/session/agenda/<uuid:item_id>/",
        views.SessionAgendaItemView.as_view(),
        name="public-session-agenda-item",
    ),
    path("public/session/leave/", views.SessionLeaveView.as_view(), name="public-session-leave"),
    path("public/session/proxy-document/", views.ProxyUploadView.as_view(), name="public-proxy-upload"),
    path("public/agenda/<uuid:item_id>/vote/", views.CastVoteView.as_view(), name="public-vote"),
    # Assemblies
    path("<slug:tenant_slug>/assemblies/", views.AssemblyListView.as_view(), name="assembly-list"),
    path(
        "<slug:tenant_slug>/assemblies/upcoming/",
        views.UpcomingAssembliesView.as_view(),
        name="assembly-upcoming",
    ),
    path(f"{assembly}/", views.AssemblyDetailView.as_view(), name="assembly-detail"),
    path(f"{assembly}/start/", views.AssemblyTransitionView.as_view(action="start"), name="assembly-start"),
    path(f"{assembly}/finish/", views.AssemblyTransitionView.as_view(action="finish"), name="assembly-finish"),
    path(f"{assembly}/cancel/", views.AssemblyTransitionView.as_view(action="cancel"), name="assembly-cancel"),
    path(f"{assembly}/stats/", views.AssemblyStatsView.as_view(), name="assembly-stats"),
    # Check-in
    path(f"{assembly}/checkin-link/", views.CheckinLinkView.as_view(), name="checkin-link"),
    path(f"{assembly}/checkin-code/", views.CheckinCodeView.as_view(), name="checkin-code"),
    # Attendance
    path(f"{assembly}/attendance/", views.AttendanceView.as_view(), name="attendance"),
    path(f"{assembly}/quorum/", views.QuorumView.as_view(), name="quorum"),
    path(f"{assembly}/participants/", views.ParticipantListView.as_view(), name="participant-list"),
    path(f"{participant}/", views.ParticipantDetailView.as_view(), name="participant-detail"),
    path(f"{participant}/join/", views.ParticipantJoinView.as_view(), name="participant-join"),
    path(f"{participant}/leave/", views.ParticipantLeaveView.as_view(), name="participant-leave"),
    path(f"{participant}/weight/", views.ParticipantWeightView.as_view(), name="participant-weight"),
    # Proxies
    path(f"{assembly}/proxies/pending/", views.PendingProxiesView.as_view(), name="proxy-pending"),
    path(f"{participant}/approve/", views.ProxyDecisionView.as_view(action="approve"), name="proxy-approve"),
    path(f"{participant}/reject/", views.ProxyDecisionView.as_view(action="reject"), name="proxy-reject"),
    path(f"{participant}/document/", views.ProxyDocumentView.as_view(), name="proxy-document"),
    # Agenda & voting
    path(f"{assembly}/agenda/", views.AgendaListView.as_view(), name="agenda-list"),
    path(f"{item}/", views.AgendaItemDetailView.as_view(), name="agenda-detail"),
    path(f"{item}/start-voting/", views.AgendaVotingView.as_view(action="start"), name="voting-start"),
    path(f"{item}/close-voting/", views.AgendaVotingView.as_view(action="close"), name="voting-close"),
    path(f"{item}/voting-code/", views.VotingCodeView.as_view(), name="voting-code"),
    path(f"{item}/results/", views.VoteResultsView.as_view(), name="vote-results"),
    # Minutes
    path(f"{assembly}/minutes/", views.MinutesView.as_view(), name="minutes"),
    path(f"{assembly}/minutes/generate/", views.MinutesActionView.as_view(action="generate"), name="minutes-generate"),
    path(f"{assembly}/minutes/approve/", views.MinutesActionView.as_view(action="approve"), name="minutes-approve"),
    path(f"{assembly}/minutes/publish/", views.MinutesActionView.as_view(action="publish"), name="minutes-publish"),
]
