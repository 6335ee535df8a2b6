"""
HTTP client for the groups API.

Every call returns a ServiceResult instead of raising, so callers handle
success and failure the same way.

A timeout does not mean nothing happened. The request may have reached the
server and its change may have been committed before the response was lost.
Re-read the affected group or post before retrying a write that timed out.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

READ_TIMEOUT = 15
WRITE_TIMEOUT = 30

TIMEOUT_MESSAGE = "Connection timeout. The server may still have applied the request."
CONNECTION_MESSAGE = "Could not connect to the server."


@dataclass
class ServiceResult:
    success: bool
    message: str = ''
    data: Any = None
    status_code: Optional[int] = None
    timed_out: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {'success': self.success, 'message': self.message, 'data': self.data}


@dataclass
class GroupServiceClient:
    """
    Thin wrapper around the groups REST API.

    Args:
        base_url: API root, e.g. ``https://example.com/api``
        session: Optional requests.Session (shared connection pool, auth headers)
    """

    base_url: str
    session: Optional[requests.Session] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.base_url = self.base_url.rstrip('/')
        if self.session is None:
            self.session = requests.Session()

    def _url(self, *parts) -> str:
        path = '/'.join(str(part).strip('/') for part in parts)
        return f"{self.base_url}/groups/{path}/" if path else f"{self.base_url}/groups/"

    def _request(self, method: str, url: str, *, params=None, json=None, files=None, data=None) -> ServiceResult:
        timeout = READ_TIMEOUT if method == 'GET' else WRITE_TIMEOUT
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                data=data,
                files=files,
                headers=self.headers or None,
                timeout=timeout,
            )
        except requests.Timeout:
            logger.warning("%s %s timed out after %ss", method, url, timeout)
            return ServiceResult(success=False, message=TIMEOUT_MESSAGE, timed_out=True)
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, url, e)
            return ServiceResult(success=False, message=CONNECTION_MESSAGE)

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.ok:
            message = body.get('message', '') if isinstance(body, dict) else ''
            return ServiceResult(
                success=True,
                message=message,
                data=body,
                status_code=response.status_code,
            )

        message = ''
        if isinstance(body, dict):
            message = body.get('error') or body.get('message') or body.get('detail') or ''
        if not message:
            message = f"Request failed with status {response.status_code}"
        return ServiceResult(
            success=False,
            message=str(message),
            data=body,
            status_code=response.status_code,
        )

    # Groups

    def create_group(self, *, name, creator_id, image=None, **fields) -> ServiceResult:
        payload = {'name': name, 'creator_id': creator_id, **fields}
        if image is not None:
            return self._request('POST', self._url(), data=payload, files={'image': image})
        return self._request('POST', self._url(), json=payload)

    def list_groups(self, *, user_id=None) -> ServiceResult:
        params = {'user_id': user_id} if user_id else None
        return self._request('GET', self._url(), params=params)

    def search_groups(self, query, *, user_id=None, include_private=False) -> ServiceResult:
        params = {'q': query}
        if user_id:
            params['user_id'] = user_id
        if include_private:
            params['include_private'] = 'true'
        return self._request('GET', self._url('search'), params=params)

    def get_group(self, group_id) -> ServiceResult:
        return self._request('GET', self._url(group_id))

    def update_group(self, group_id, *, updated_by, image=None, **changes) -> ServiceResult:
        payload = {'updated_by': updated_by, **changes}
        if image is not None:
            return self._request('PUT', self._url(group_id), data=payload, files={'image': image})
        return self._request('PUT', self._url(group_id), json=payload)

    def delete_group(self, group_id, *, user_id) -> ServiceResult:
        return self._request('DELETE', self._url(group_id), json={'user_id': user_id})

    # Membership

    def join_group(self, group_id, *, user_id) -> ServiceResult:
        return self._request('POST', self._url(group_id, 'join'), json={'user_id': user_id})

    def cancel_join_request(self, group_id, *, user_id) -> ServiceResult:
        return self._request('DELETE', self._url(group_id, 'join'), json={'user_id': user_id})

    def handle_join_request(self, group_id, user_id, *, action, admin_id) -> ServiceResult:
        return self._request(
            'PUT',
            self._url(group_id, 'requests', user_id),
            json={'action': action, 'admin_id': admin_id},
        )

    def leave_group(self, group_id, *, user_id) -> ServiceResult:
        return self._request('DELETE', self._url(group_id, 'leave', user_id))

    def get_members(self, group_id) -> ServiceResult:
        return self._request('GET', self._url(group_id, 'members'))

    def remove_member(self, group_id, member_user_id, *, admin_id) -> ServiceResult:
        return self._request(
            'DELETE',
            self._url(group_id, 'members', member_user_id),
            json={'admin_id': admin_id},
        )

    def update_member_role(self, group_id, member_user_id, *, role, admin_id) -> ServiceResult:
        return self._request(
            'PUT',
            self._url(group_id, 'members', member_user_id, 'role'),
            json={'role': role, 'admin_id': admin_id},
        )

    # Posts

    def list_posts(self, group_id, *, user_id=None) -> ServiceResult:
        params = {'user_id': user_id} if user_id else None
        return self._request('GET', self._url(group_id, 'posts'), params=params)

    def get_post(self, group_id, post_id, *, user_id=None) -> ServiceResult:
        params = {'user_id': user_id} if user_id else None
        return self._request('GET', self._url(group_id, 'posts', post_id), params=params)

    def my_posts(self, *, user_id) -> ServiceResult:
        return self._request('GET', self._url('my-posts'), params={'user_id': user_id})

    def create_post(self, group_id, *, user_id, title, image=None, video=None, **content) -> ServiceResult:
        payload = {'user_id': user_id, 'title': title, **content}
        files = {name: f for name, f in (('image', image), ('video', video)) if f is not None}
        if files:
            return self._request('POST', self._url(group_id, 'posts'), data=payload, files=files)
        return self._request('POST', self._url(group_id, 'posts'), json=payload)

    def update_post(self, group_id, post_id, *, user_id, **changes) -> ServiceResult:
        return self._request(
            'PATCH',
            self._url(group_id, 'posts', post_id),
            json={'user_id': user_id, **changes},
        )

    def delete_post(self, group_id, post_id, *, user_id) -> ServiceResult:
        return self._request('DELETE', self._url(group_id, 'posts', post_id), json={'user_id': user_id})

    def approve_post(self, group_id, post_id, *, admin_id) -> ServiceResult:
        return self._request(
            'POST',
            self._url(group_id, 'posts', post_id, 'approve'),
            json={'admin_id': admin_id},
        )

    def reject_post(self, group_id, post_id, *, admin_id) -> ServiceResult:
        return self._request(
            'POST',
            self._url(group_id, 'posts', post_id, 'reject'),
            json={'admin_id': admin_id},
        )

    def like_post(self, group_id, post_id, *, user_id) -> ServiceResult:
        return self._request('POST', self._url(group_id, 'posts', post_id, 'like'), json={'user_id': user_id})

    def unlike_post(self, group_id, post_id, *, user_id) -> ServiceResult:
        return self._request('DELETE', self._url(group_id, 'posts', post_id, 'like'), json={'user_id': user_id})

    def add_comment(self, group_id, post_id, *, user_id, text, user_name=None) -> ServiceResult:
        payload = {'user_id': user_id, 'text': text}
        if user_name:
            payload['user_name'] = user_name
        return self._request('POST', self._url(group_id, 'posts', post_id, 'comments'), json=payload)

    def delete_comment(self, group_id, post_id, comment_id, *, user_id) -> ServiceResult:
        return self._request(
            'DELETE',
            self._url(group_id, 'posts', post_id, 'comments', comment_id),
            json={'user_id': user_id},
        )
