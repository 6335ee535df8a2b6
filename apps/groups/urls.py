from django.urls import path, include
from rest_framework.routers import SimpleRouter
from . import views

app_name = 'groups'

# SimpleRouter: a DefaultRouter API root would shadow the group list at ''
router = SimpleRouter()
router.register(r'(?P<group_id>[^/.]+)/posts', views.GroupPostViewSet, basename='group-post')
router.register(r'', views.GroupViewSet, basename='group')

urlpatterns = [
    # Group ViewSet routes
    # GET    /api/groups/?user_id=                     - List visible groups
    # POST   /api/groups/                              - Create group
    # GET    /api/groups/search/?q=&user_id=           - Search groups
    # GET    /api/groups/my-posts/?user_id=            - Approved posts across the user's groups
    # GET    /api/groups/{id}/                         - Group details
    # PUT    /api/groups/{id}/                         - Update group (creator/admin)
    # PATCH  /api/groups/{id}/                         - Partial update (creator/admin)
    # DELETE /api/groups/{id}/                         - Delete group (creator)

    # Membership and join workflow
    # POST   /api/groups/{id}/join/                    - Join or request to join
    # DELETE /api/groups/{id}/join/                    - Cancel pending request
    # PUT    /api/groups/{id}/requests/{user_id}/      - Approve/reject request (creator/admin)
    # DELETE /api/groups/{id}/leave/{user_id}/         - Leave group
    # GET    /api/groups/{id}/members/                 - List members
    # DELETE /api/groups/{id}/members/{user_id}/       - Remove member (creator/admin)
    # PUT    /api/groups/{id}/members/{user_id}/role/  - Change role (creator)

    # Group posts
    # GET    /api/groups/{id}/posts/?user_id=          - Visible posts
    # POST   /api/groups/{id}/posts/                   - Create post
    # GET    /api/groups/{id}/posts/{post_id}/         - Post details
    # PUT    /api/groups/{id}/posts/{post_id}/         - Edit post
    # DELETE /api/groups/{id}/posts/{post_id}/         - Delete post
    # POST   /api/groups/{id}/posts/{post_id}/approve/ - Approve pending post
    # POST   /api/groups/{id}/posts/{post_id}/reject/  - Reject (delete) pending post
    # POST   /api/groups/{id}/posts/{post_id}/like/    - Like
    # DELETE /api/groups/{id}/posts/{post_id}/like/    - Unlike
    # POST   /api/groups/{id}/posts/{post_id}/comments/              - Comment
    # DELETE /api/groups/{id}/posts/{post_id}/comments/{comment_id}/ - Delete comment

    path('', include(router.urls)),
]
