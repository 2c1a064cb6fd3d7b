from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class QueryDescriptor:
    name: str
    query: str


# --------------------------------
# Resource Graph (inventory) KQL
# --------------------------------
# Every inventory query ends with a total order so skip/top windows stay disjoint.

APPS = QueryDescriptor(
    name="Apps",
    query="""
resources
| where type =~ 'microsoft.web/sites'
| extend planId = tolower(tostring(properties.serverFarmId))
| project
    subscriptionId,
    resourceGroup,
    name,
    kind,
    location,
    state = tostring(properties.state),
    enabled = tobool(properties.enabled),
    defaultHostName = tostring(properties.defaultHostName),
    httpsOnly = tobool(properties.httpsOnly),
    clientCertEnabled = tobool(properties.clientCertEnabled),
    identityType = tostring(identity.type),
    planName = tostring(split(planId, '/')[-1]),
    planId,
    lastModified = todatetime(properties.lastModifiedTimeUtc),
    tags,
    id
| order by subscriptionId asc, resourceGroup asc, name asc
""".strip(),
)

PLANS = QueryDescriptor(
    name="Plans",
    query="""
resources
| where type =~ 'microsoft.web/serverfarms'
| project
    subscriptionId,
    resourceGroup,
    name,
    kind,
    location,
    skuName = tostring(sku.name),
    skuTier = tostring(sku.tier),
    skuSize = tostring(sku.size),
    capacity = toint(sku.capacity),
    maximumElasticWorkerCount = toint(properties.maximumElasticWorkerCount),
    numberOfSites = toint(properties.numberOfSites),
    isLinux = tobool(properties.reserved),
    zoneRedundant = tobool(properties.zoneRedundant),
    status = tostring(properties.status),
    tags,
    id = tolower(id)
| order by subscriptionId asc, resourceGroup asc, name asc
""".strip(),
)

AUTOSCALE = QueryDescriptor(
    name="Autoscale",
    query="""
resources
| where type =~ 'microsoft.insights/autoscalesettings'
| extend targetResourceUri = tolower(tostring(properties.targetResourceUri))
| where targetResourceUri contains 'microsoft.web/serverfarms'
| mv-expand profile = properties.profiles
| project
    subscriptionId,
    resourceGroup,
    name,
    location,
    enabled = tobool(properties.enabled),
    targetPlan = tostring(split(targetResourceUri, '/')[-1]),
    profileName = tostring(profile.name),
    minimum = toint(profile.capacity.minimum),
    maximum = toint(profile.capacity.maximum),
    default = toint(profile.capacity['default']),
    ruleCount = array_length(profile.rules),
    targetResourceUri,
    id
| order by subscriptionId asc, resourceGroup asc, name asc, profileName asc
""".strip(),
)

STACKS = QueryDescriptor(
    name="Stacks",
    query="""
appserviceresources
| where type =~ 'microsoft.web/sites/config'
| extend appName = tostring(split(id, '/')[8])
| project
    subscriptionId,
    resourceGroup,
    appName,
    linuxFxVersion = tostring(properties.linuxFxVersion),
    windowsFxVersion = tostring(properties.windowsFxVersion),
    netFrameworkVersion = tostring(properties.netFrameworkVersion),
    javaVersion = tostring(properties.javaVersion),
    nodeVersion = tostring(properties.nodeVersion),
    phpVersion = tostring(properties.phpVersion),
    pythonVersion = tostring(properties.pythonVersion),
    powerShellVersion = tostring(properties.powerShellVersion),
    use32BitWorkerProcess = tobool(properties.use32BitWorkerProcess),
    alwaysOn = tobool(properties.alwaysOn),
    http20Enabled = tobool(properties.http20Enabled),
    minTlsVersion = tostring(properties.minTlsVersion),
    ftpsState = tostring(properties.ftpsState),
    id
| order by subscriptionId asc, resourceGroup asc, appName asc
""".strip(),
)

NETWORKING = QueryDescriptor(
    name="Networking",
    query="""
resources
| where type =~ 'microsoft.web/sites'
| project
    subscriptionId,
    resourceGroup,
    name,
    publicNetworkAccess = tostring(properties.publicNetworkAccess),
    virtualNetworkSubnetId = tostring(properties.virtualNetworkSubnetId),
    vnetRouteAllEnabled = tobool(properties.vnetRouteAllEnabled),
    privateEndpointCount = array_length(properties.privateEndpointConnections),
    inboundIpAddress = tostring(properties.inboundIpAddress),
    outboundIpAddresses = tostring(properties.outboundIpAddresses),
    possibleOutboundIpAddresses = tostring(properties.possibleOutboundIpAddresses),
    ipSecurityRestrictions = properties.siteConfig.ipSecurityRestrictions,
    id
| order by subscriptionId asc, resourceGroup asc, name asc
""".strip(),
)

DOMAINS = QueryDescriptor(
    name="Domains",
    query="""
resources
| where type =~ 'microsoft.web/sites'
| mv-expand binding = properties.hostNameSslStates
| project
    subscriptionId,
    resourceGroup,
    appName = name,
    hostName = tostring(binding.name),
    hostType = tostring(binding.hostType),
    sslState = tostring(binding.sslState),
    thumbprint = tostring(binding.thumbprint),
    isDefaultHost = tostring(binding.name) endswith '.azurewebsites.net',
    id
| order by subscriptionId asc, resourceGroup asc, appName asc, hostName asc
""".strip(),
)

INVENTORY_QUERIES: Tuple[QueryDescriptor, ...] = (APPS, PLANS, AUTOSCALE, STACKS, NETWORKING, DOMAINS)

# --------------------------------
# Log Analytics (metrics) KQL
# --------------------------------

RESPONSE_TIME = QueryDescriptor(
    name="ResponseTime",
    query="""
AzureMetrics
| where ResourceProvider == 'MICROSOFT.WEB' and MetricName in ('HttpResponseTime', 'AverageResponseTime')
| summarize
    AvgResponseSeconds = round(avg(Average), 3),
    MaxResponseSeconds = round(max(Maximum), 3),
    Samples = sum(Count)
    by SubscriptionId, ResourceGroup, Resource
| order by AvgResponseSeconds desc
""".strip(),
)

CPU_TIME = QueryDescriptor(
    name="CpuTime",
    query="""
AzureMetrics
| where ResourceProvider == 'MICROSOFT.WEB' and MetricName == 'CpuTime'
| summarize
    TotalCpuSeconds = round(sum(Total), 1),
    PeakCpuSecondsPerInterval = round(max(Maximum), 1)
    by SubscriptionId, ResourceGroup, Resource
| order by TotalCpuSeconds desc
""".strip(),
)

MEMORY_WORKING_SET = QueryDescriptor(
    name="MemoryWorkingSet",
    query="""
AzureMetrics
| where ResourceProvider == 'MICROSOFT.WEB' and MetricName == 'MemoryWorkingSet'
| summarize
    AvgWorkingSetMB = round(avg(Average) / 1048576, 1),
    MaxWorkingSetMB = round(max(Maximum) / 1048576, 1)
    by SubscriptionId, ResourceGroup, Resource
| order by AvgWorkingSetMB desc
""".strip(),
)

PLAN_CPU_MEMORY_PCT = QueryDescriptor(
    name="PlanCpuMemoryPct",
    query="""
AzureMetrics
| where ResourceProvider == 'MICROSOFT.WEB' and ResourceId contains '/SERVERFARMS/'
| where MetricName in ('CpuPercentage', 'MemoryPercentage')
| summarize
    AvgCpuPct = round(avgif(Average, MetricName == 'CpuPercentage'), 1),
    MaxCpuPct = round(maxif(Maximum, MetricName == 'CpuPercentage'), 1),
    AvgMemoryPct = round(avgif(Average, MetricName == 'MemoryPercentage'), 1),
    MaxMemoryPct = round(maxif(Maximum, MetricName == 'MemoryPercentage'), 1)
    by SubscriptionId, ResourceGroup, Plan = Resource
| order by AvgCpuPct desc
""".strip(),
)

METRICS_QUERIES: Tuple[QueryDescriptor, ...] = (RESPONSE_TIME, CPU_TIME, MEMORY_WORKING_SET, PLAN_CPU_MEMORY_PCT)

SUBSCRIPTIONS = QueryDescriptor(
    name="Subscriptions",
    query="""
resourcecontainers
| where type =~ 'microsoft.resources/subscriptions'
| project subscriptionId, name, state = tostring(properties.state), tenantId
| order by name asc, subscriptionId asc
""".strip(),
)
