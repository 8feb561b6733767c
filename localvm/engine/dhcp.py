"""Find a VMware guest's IP address from the host's DHCP lease tables.

VMware Workstation and Fusion manage up to 256 virtual networks (vmnet0,
vmnet1, ...). By default vmnet0 is bridged, vmnet1 is host-only and vmnet8 is
NAT. Host-only and NAT networks get addresses from a DHCP server that VMware
runs on the host, and every such network has

    answer VNET_8_DHCP yes

in the host networking config plus a lease table, e.g.
``/etc/vmware/vmnet8/dhcpd/dhcpd.leases``:

    lease 172.16.23.128 {
        starts 2 2019/04/02 01:05:48;
        ends 2 2019/04/02 01:35:48;
        hardware ethernet 00:0c:29:56:7f:63;
        uid ff:bc:9a:4a:2d:00:02:00:00:ab:11:15:39:5e:d3:35:a2:c9:00;
        client-hostname "ubuntu";
    }

Lease times are UTC. The VMX file names the MAC address of every virtual NIC,
so matching those MACs against the currently valid leases tells us which IP
belongs to which guest without asking the guest anything.

Bridged NICs are addressed by the physical LAN's DHCP server and static IPs
never show up in a lease table; neither is handled here.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from ..errors import LocalVMError, NotFoundError

log = logger

DHCP_DATE_FORMAT = '%Y/%m/%d %H:%M:%S'

RE_NIC_ADDRESS = re.compile(
    r'^\s*(ethernet\d+)\.(generatedAddress|address)\s*=\s*"([^"]*)"',
    re.MULTILINE | re.IGNORECASE,
)
RE_NIC_ABSENT = re.compile(
    r'^\s*(ethernet\d+)\.present\s*=\s*"false"',
    re.MULTILINE | re.IGNORECASE,
)
RE_NETWORKING_DHCP = re.compile(r'answer\s+VNET_(\d+)_DHCP\s+yes')
RE_LEASE_BLOCK = re.compile(r'lease\s+(\S+)\s*\{(.*?)\}', re.DOTALL)
RE_LEASE_STARTS = re.compile(r'starts\s+\d+\s+([0-9/: ]+);')
RE_LEASE_ENDS = re.compile(r'ends\s+\d+\s+([0-9/: ]+);')
RE_LEASE_MAC = re.compile(r'hardware\s+ethernet\s+([0-9A-Fa-f:-]+);')
RE_MAC = re.compile(
    r'^[0-9a-f]{2}([:-])(?:[0-9a-f]{2}\1){4}[0-9a-f]{2}$', re.IGNORECASE
)


@dataclass(frozen=True)
class NetworkInterface:
    name: str
    mac: str


@dataclass(frozen=True)
class Lease:
    ip: str
    starts: datetime
    ends: datetime
    mac: str

    def is_active(self, now: datetime) -> bool:
        return self.starts < now < self.ends


def normalize_mac(raw: str) -> str:
    """Return ``raw`` as lower-case colon separated hex.

    Example:
        >>> normalize_mac('00-0C-29-F7-07-F2')
        '00:0c:29:f7:07:f2'
    """
    text = (raw or '').strip()
    if not RE_MAC.match(text):
        raise ValueError(f'invalid MAC address: {raw!r}')
    return text.lower().replace('-', ':')


def read_interfaces(vmx_path: str | Path) -> list[NetworkInterface]:
    """List the virtual NICs declared in a VMX file, in file order.

    A static ``ethernetN.address`` wins over ``ethernetN.generatedAddress``.
    NICs marked ``present = "FALSE"`` are skipped.
    """
    text = Path(vmx_path).read_text(encoding='utf-8', errors='replace')
    absent = {m.group(1).lower() for m in RE_NIC_ABSENT.finditer(text)}
    generated: dict[str, str] = {}
    static: dict[str, str] = {}
    order: list[str] = []
    for match in RE_NIC_ADDRESS.finditer(text):
        name = match.group(1).lower()
        key = match.group(2).lower()
        raw = match.group(3)
        if name in absent:
            continue
        try:
            mac = normalize_mac(raw)
        except ValueError:
            log.warning(
                'Skipping malformed MAC address {!r} for {} in {}',
                raw,
                name,
                vmx_path,
            )
            continue
        if name not in order:
            order.append(name)
        if key == 'address':
            static[name] = mac
        else:
            generated[name] = mac
    return [NetworkInterface(n, static.get(n) or generated[n]) for n in order]


def read_mac_addresses(vmx_path: str | Path) -> dict[str, str]:
    """Map interface name (e.g. ``ethernet0``) to MAC address."""
    return {nic.name: nic.mac for nic in read_interfaces(vmx_path)}


def list_dhcp_networks(networking_file: str | Path) -> list[int]:
    """Return the ids of virtual networks with DHCP enabled, ascending.

    Bridged networks never appear here because the physical LAN hands out
    their addresses.
    """
    path = Path(networking_file)
    try:
        text = path.read_text(encoding='utf-8', errors='replace')
    except FileNotFoundError as ex:
        raise LocalVMError(
            f'VMware networking configuration not found at {path}. '
            'Is VMware installed? Set vmware.networking_file in the localvm '
            'settings if it lives elsewhere.'
        ) from ex
    ids = {int(m.group(1)) for m in RE_NETWORKING_DHCP.finditer(text)}
    return sorted(ids)


def _parse_lease_time(raw: str) -> datetime:
    return datetime.strptime(raw.strip(), DHCP_DATE_FORMAT).replace(
        tzinfo=timezone.utc
    )


def parse_leases(text: str) -> list[Lease]:
    leases: list[Lease] = []
    for block in RE_LEASE_BLOCK.finditer(text):
        raw_ip, body = block.group(1), block.group(2)
        starts = RE_LEASE_STARTS.search(body)
        ends = RE_LEASE_ENDS.search(body)
        mac = RE_LEASE_MAC.search(body)
        if not (starts and ends and mac):
            continue
        try:
            lease = Lease(
                ip=str(ipaddress.ip_address(raw_ip)),
                starts=_parse_lease_time(starts.group(1)),
                ends=_parse_lease_time(ends.group(1)),
                mac=normalize_mac(mac.group(1)),
            )
        except ValueError as ex:
            log.debug('Skipping unparseable lease for {}: {}', raw_ip, ex)
            continue
        leases.append(lease)
    return leases


def leases_path(template: str, network_id: int) -> Path:
    return Path(template.format(network_id))


def find_current_lease(
    leases_file: str | Path, mac: str, *, now: datetime | None = None
) -> str:
    """Return the IP of the first valid lease held by ``mac``.

    A MAC can show up with more than one valid lease when the VMware DHCP
    server loses track of its own bookkeeping (two guests have been seen
    sharing one address). That is not reconciled: the first lease wins.

    Raises:
        NotFoundError: if no lease in the table matches right now.
    """
    path = Path(leases_file)
    want = normalize_mac(mac)
    now = now or datetime.now(timezone.utc)
    try:
        text = path.read_text(encoding='utf-8', errors='replace')
    except FileNotFoundError:
        log.debug('No lease table at {}', path)
        raise NotFoundError() from None
    for lease in parse_leases(text):
        if lease.mac != want:
            continue
        if lease.is_active(now):
            return lease.ip
    raise NotFoundError()


def detect_ip(
    mac: str,
    *,
    networking_file: str | Path,
    leases_file: str,
    now: datetime | None = None,
) -> str:
    """Search every DHCP-enabled network for a lease held by ``mac``.

    Raises:
        NotFoundError: if no network has a valid lease for ``mac``.
    """
    for network_id in list_dhcp_networks(networking_file):
        path = leases_path(leases_file, network_id)
        try:
            ip = find_current_lease(path, mac, now=now)
        except NotFoundError:
            continue
        log.debug('Found lease {} for {} on vmnet{}', ip, mac, network_id)
        return ip
    raise NotFoundError()
